"""Core orchestrator - wires adapters and use cases into batch saves."""
import logging
import time
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Union

from ..models import BytesHook, Entry, EntryHook, SaveOptions, SaverConfig
from ..protocols import IStorageClient, ITransport
from ..services.api_client import StorageAPIClient
from ..services.storage import StorageService
from ..services.transport import HTTPTransport
from ..use_cases.fetch import FetchEntryUseCase
from ..use_cases.save_entry import SaveEntryUseCase
from ..utils.events import EventEmitter
from .batch import SaveBatchCoordinator
from .models import BatchSaveResult

logger = logging.getLogger(__name__)

FolderSpec = Union[str, Mapping[str, Any]]


def _resolve_folder_path(fields: FolderSpec) -> str:
    """Accept a folder path, or the connector ``fields`` mapping holding one."""
    if isinstance(fields, str):
        return fields
    folder_path = fields.get("folder_path") or fields.get("folderPath")
    if not folder_path:
        raise ValueError("fields must define folder_path")
    return folder_path


def _as_entry(entry: Union[Entry, Mapping[str, Any]]) -> Entry:
    return entry if isinstance(entry, Entry) else Entry.from_dict(entry)


async def save_files(
    entries: Sequence[Union[Entry, Mapping[str, Any]]],
    fields: FolderSpec,
    storage: IStorageClient,
    transport: ITransport,
    timeout: Union[float, datetime, None] = None,
    concurrency: Optional[int] = None,
    content_type: Optional[str] = None,
    post_process: Optional[EntryHook] = None,
    post_process_file: Optional[BytesHook] = None,
    events: Optional[EventEmitter] = None,
) -> List[Entry]:
    """
    Save the files described by ``entries`` into a folder.

    Each entry needs ``fileurl``, ``request_options`` or ``filestream``;
    others are returned untouched. Returns one entry per processed input,
    in input order, with ``file_document`` set when the file is stored.
    Fewer entries than given are returned when ``timeout`` passed.

    Example:
        entries = await save_files(
            [Entry(fileurl="https://example.com/bill.pdf")],
            "/Administrative/Bills",
            storage,
            transport,
            timeout=time.time() + 10,
        )
    """
    options = SaveOptions.build(
        _resolve_folder_path(fields),
        timeout=timeout,
        concurrency=concurrency,
        content_type=content_type,
        post_process=post_process,
        post_process_file=post_process_file,
    )
    save_entry = SaveEntryUseCase(storage, FetchEntryUseCase(transport))
    coordinator = SaveBatchCoordinator(save_entry, events)
    result = await coordinator.run([_as_entry(e) for e in entries], options)
    return result.entries


class FileSaver:
    """
    Saves batches of files using HTTP adapters built from configuration.

    Usage:
        async with FileSaver(SaverConfig.from_env()) as saver:
            entries = await saver.save_all(entries, "/Administrative/Bills")

        # Custom collaborators
        async with FileSaver(storage=my_storage, transport=my_transport) as saver:
            result = await saver.save_batch(entries, "/Bills", concurrency=2)
    """

    def __init__(
        self,
        config: Optional[SaverConfig] = None,
        storage: Optional[IStorageClient] = None,
        transport: Optional[ITransport] = None,
        events: Optional[EventEmitter] = None,
    ):
        """
        Initialize saver with dependencies.

        Args:
            config: Runtime configuration (used for adapters not injected)
            storage: Pre-built storage client
            transport: Pre-built transport
            events: Event emitter for progress listeners
        """
        self._config = config or SaverConfig()
        self._external_storage = storage
        self._external_transport = transport
        self.events = events or EventEmitter()

        # Initialized in __aenter__
        self._api_client: Optional[StorageAPIClient] = None
        self._http_transport: Optional[HTTPTransport] = None
        self._storage: Optional[IStorageClient] = None
        self._transport: Optional[ITransport] = None

    async def __aenter__(self):
        if self._external_storage is not None:
            self._storage = self._external_storage
        else:
            self._api_client = StorageAPIClient(
                self._config.storage_url,
                token=self._config.storage_token,
                timeout=self._config.http_timeout,
            )
            await self._api_client.__aenter__()
            self._storage = StorageService(self._api_client)

        if self._external_transport is not None:
            self._transport = self._external_transport
        else:
            self._http_transport = HTTPTransport(
                user_agent=self._config.user_agent, timeout=self._config.http_timeout
            )
            await self._http_transport.__aenter__()
            self._transport = self._http_transport

        return self

    async def __aexit__(self, *args):
        if self._http_transport:
            await self._http_transport.__aexit__(*args)
        if self._api_client:
            await self._api_client.__aexit__(*args)

    def build_options(
        self,
        fields: FolderSpec,
        timeout: Union[float, datetime, None] = None,
        concurrency: Optional[int] = None,
        content_type: Optional[str] = None,
        post_process: Optional[EntryHook] = None,
        post_process_file: Optional[BytesHook] = None,
    ) -> SaveOptions:
        if timeout is None:
            timeout = time.time() + self._config.default_timeout_seconds
        return SaveOptions.build(
            _resolve_folder_path(fields),
            timeout=timeout,
            concurrency=concurrency or self._config.default_concurrency,
            content_type=content_type,
            post_process=post_process,
            post_process_file=post_process_file,
        )

    async def save_batch(
        self,
        entries: Sequence[Union[Entry, Mapping[str, Any]]],
        fields: FolderSpec,
        **options,
    ) -> BatchSaveResult:
        """Save entries and return the detailed batch result."""
        assert self._storage is not None and self._transport is not None
        save_options = self.build_options(fields, **options)
        save_entry = SaveEntryUseCase(self._storage, FetchEntryUseCase(self._transport))
        coordinator = SaveBatchCoordinator(save_entry, self.events)
        return await coordinator.run([_as_entry(e) for e in entries], save_options)

    async def save_all(
        self,
        entries: Sequence[Union[Entry, Mapping[str, Any]]],
        fields: FolderSpec,
        **options,
    ) -> List[Entry]:
        """Save entries and return them, each with its file record when stored."""
        result = await self.save_batch(entries, fields, **options)
        return result.entries
