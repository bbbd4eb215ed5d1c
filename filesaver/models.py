"""
Models for filesaver module.

Immutable dataclasses: pipeline stages return new values instead of
mutating the caller's entries.
"""
import os
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union

DEFAULT_TIMEOUT_SECONDS = 4 * 60  # the hosting stack kills jobs after 5 minutes
DEFAULT_CONCURRENCY = 1

# Keys of the connector dictionary shape that map onto Entry fields
_ENTRY_KEYS = {
    "fileurl": "fileurl",
    "filename": "filename",
    "requestOptions": "request_options",
    "filestream": "filestream",
    "fileDocument": "file_document",
}

# Dropped from an entry once it is saved
_TRANSIENT_KEYS = {"requestOptions", "filestream"}

EntryHook = Callable[["Entry"], Union["Entry", Awaitable["Entry"]]]
BytesHook = Callable[[bytes], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class FileRecord:
    """Immutable view of a file stored by the storage service."""
    id: str
    name: str
    mime: Optional[str] = None
    size: Optional[int] = None
    dir_id: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "FileRecord":
        """Build a record from a JSON:API document (with or without the ``data`` wrapper)."""
        data = payload.get("data", payload)
        attributes = data.get("attributes") or {}
        size = attributes.get("size")
        return cls(
            id=data.get("id") or data.get("_id"),
            name=attributes.get("name", ""),
            mime=attributes.get("mime"),
            size=int(size) if size not in (None, "") else None,
            dir_id=attributes.get("dir_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "attributes": {
                "name": self.name,
                "mime": self.mime,
                "size": self.size,
                "dir_id": self.dir_id,
            },
        }


@dataclass(frozen=True)
class Entry:
    """
    One file to materialize in the storage service.

    Entries built with ``from_dict`` remember their input keys and the raw
    ``fileDocument`` mapping, so ``to_dict`` gives back an untouched entry
    unchanged.
    """
    fileurl: Optional[str] = None
    filename: Optional[str] = None
    request_options: Optional[Mapping[str, Any]] = None
    filestream: Any = None
    file_document: Optional[FileRecord] = None
    extra: Mapping[str, Any] = field(default_factory=dict)
    source_keys: Tuple[str, ...] = field(default=(), compare=False, repr=False)
    raw_file_document: Optional[Mapping[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def can_be_saved(self) -> bool:
        return bool(self.fileurl or self.request_options or self.filestream is not None)

    @property
    def label(self) -> str:
        """URL or file name, for log messages."""
        return self.fileurl or self.filename or "<unnamed entry>"

    def with_file_document(self, record: FileRecord) -> "Entry":
        return replace(self, file_document=record, raw_file_document=None)

    def sanitized(self) -> "Entry":
        """Drop fields that are not serializable or meaningless once saved."""
        return replace(
            self,
            request_options=None,
            filestream=None,
            source_keys=tuple(k for k in self.source_keys if k not in _TRANSIENT_KEYS),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Entry":
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            if key in _ENTRY_KEYS:
                kwargs[_ENTRY_KEYS[key]] = value
            else:
                extra[key] = value
        document = kwargs.get("file_document")
        if isinstance(document, Mapping):
            kwargs["file_document"] = FileRecord.from_api(document)
            kwargs["raw_file_document"] = document
        return cls(extra=extra, source_keys=tuple(data), **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Render the connector dictionary shape, in input key order."""
        values: Dict[str, Any] = dict(self.extra)
        for key, attr in _ENTRY_KEYS.items():
            value = getattr(self, attr)
            if value is None:
                if key in self.source_keys:
                    values[key] = None
            elif key == "requestOptions":
                values[key] = dict(value)
            elif key == "fileDocument":
                raw = self.raw_file_document
                values[key] = dict(raw) if raw is not None else value.to_dict()
            elif key != "filestream":
                values[key] = value
        data = {key: values.pop(key) for key in self.source_keys if key in values}
        data.update(values)
        return data


@dataclass(frozen=True)
class SaveOutcome:
    """Result of saving one entry. ``created`` is never stored on the entry."""
    entry: Entry
    created: bool = False
    failed: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @property
    def reused(self) -> bool:
        return not (self.created or self.failed or self.skipped) and self.entry.file_document is not None


@dataclass(frozen=True)
class SaveOptions:
    """Immutable configuration for one batch run."""
    folder_path: str
    deadline: float
    concurrency: int = DEFAULT_CONCURRENCY
    content_type: Optional[str] = None
    post_process: Optional[EntryHook] = None
    post_process_file: Optional[BytesHook] = None

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")

    @classmethod
    def build(
        cls,
        folder_path: str,
        timeout: Union[float, datetime, None] = None,
        concurrency: Optional[int] = None,
        content_type: Optional[str] = None,
        post_process: Optional[EntryHook] = None,
        post_process_file: Optional[BytesHook] = None,
        now: Optional[float] = None,
    ) -> "SaveOptions":
        """
        Normalize caller options, applying defaults at call time.

        Args:
            folder_path: Target folder in the storage service
            timeout: Absolute deadline (epoch seconds or datetime)
            concurrency: Max entries in flight (default 1)
            content_type: Force the stored media type
            post_process: Entry -> Entry hook applied after a save
            post_process_file: Deprecated bytes -> bytes hook
            now: Current time override (epoch seconds)
        """
        if isinstance(timeout, datetime):
            deadline = timeout.timestamp()
        elif timeout:
            deadline = float(timeout)
        else:
            deadline = (now if now is not None else time.time()) + DEFAULT_TIMEOUT_SECONDS
        return cls(
            folder_path=folder_path,
            deadline=deadline,
            concurrency=concurrency or DEFAULT_CONCURRENCY,
            content_type=content_type,
            post_process=post_process,
            post_process_file=post_process_file,
        )


@dataclass(frozen=True)
class SaverConfig:
    """Immutable runtime configuration for the storage and transport adapters."""
    storage_url: str = "http://localhost:8080"
    storage_token: Optional[str] = None
    user_agent: str = "filesaver/0.1"
    http_timeout: float = 60.0
    default_concurrency: int = DEFAULT_CONCURRENCY
    default_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SaverConfig":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            storage_url=env.get("FILESAVER_STORAGE_URL", defaults.storage_url),
            storage_token=env.get("FILESAVER_STORAGE_TOKEN") or None,
            user_agent=env.get("FILESAVER_USER_AGENT", defaults.user_agent),
            http_timeout=float(env.get("FILESAVER_HTTP_TIMEOUT", defaults.http_timeout)),
            default_concurrency=int(env.get("FILESAVER_CONCURRENCY", defaults.default_concurrency)),
        )
