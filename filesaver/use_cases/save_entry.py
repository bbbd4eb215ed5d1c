"""
Save one entry into the storage service.

Flow:
1. Check the batch deadline
2. Look up the target path; reuse a valid file, trash an invalid one
3. Fetch and create the file when nothing valid is stored
4. Attach the record, drop transient fields, apply the post-process hook
"""
from __future__ import annotations

import inspect
import logging
import posixpath
import time
from typing import Callable, Optional, Tuple

from filesaver.errors import (
    DiskQuotaExceededError,
    SaveTimeoutError,
    StorageError,
    error_status,
)
from filesaver.models import Entry, FileRecord, SaveOptions, SaveOutcome
from filesaver.protocols import IStorageClient
from filesaver.use_cases.fetch import FetchEntryUseCase
from filesaver.use_cases.integrity import (
    CheckIntegrityUseCase,
    mime_matches_path,
    size_is_non_zero,
)
from filesaver.use_cases.naming import resolve_file_name
from filesaver.utils.streams import close_byte_source, describe_byte_source

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_STATUS = 413


def _describe_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


def check_deadline(options: SaveOptions, now: float) -> None:
    if options.deadline and now > options.deadline:
        remaining = int(options.deadline - now)
        logger.info("%ss timeout finished for %s", remaining, options.folder_path)
        raise SaveTimeoutError(options.deadline, options.folder_path)


class SaveEntryUseCase:
    """Run the per-entry save state machine."""

    def __init__(
        self,
        storage: IStorageClient,
        fetch_entry: FetchEntryUseCase,
        check_integrity: Optional[CheckIntegrityUseCase] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._fetch_entry = fetch_entry
        self._check_integrity = check_integrity or CheckIntegrityUseCase()
        self._clock = clock

    async def execute(self, entry: Entry, options: SaveOptions) -> SaveOutcome:
        """
        Save ``entry`` and return the outcome.

        Any failure other than the deadline returns the input entry
        unchanged with ``failed=True``.

        Raises:
            SaveTimeoutError: the batch deadline has passed
        """
        check_deadline(options, self._clock())

        created = False
        try:
            record, created = await self._materialize(entry, options)
            saved = entry.with_file_document(record).sanitized()
            if options.post_process:
                result = options.post_process(saved)
                if inspect.isawaitable(result):
                    result = await result
                saved = result
            return SaveOutcome(entry=saved, created=created)
        except SaveTimeoutError:
            raise
        except Exception as exc:
            return self._handle_failure(entry, exc, created)

    async def _materialize(self, entry: Entry, options: SaveOptions) -> Tuple[FileRecord, bool]:
        """Return (record, created) for the entry's target path."""
        name = resolve_file_name(entry)
        filepath = posixpath.join(options.folder_path, name)

        existing = await self._lookup_valid(filepath)
        if existing is not None:
            return existing, False

        logger.debug("File %s does not exist yet or is not valid", filepath)
        if entry.filestream is not None:
            logger.debug(describe_byte_source(entry.filestream))
        return await self._create(entry, name, options), True

    async def _lookup_valid(self, filepath: str) -> Optional[FileRecord]:
        """Stored record at ``filepath`` if it passes integrity checks; invalid ones are trashed."""
        try:
            record = await self._storage.stat_by_path(filepath)
            if record is None:
                return None
            decision = self._check_integrity.execute(record, filepath)
            if decision.action == "reuse":
                return record
            logger.info("Replacing %s (%s)", filepath, decision.reason)
            await self._storage.trash_by_id(record.id)
        except Exception as exc:
            logger.debug("Lookup of %s failed, creating it: %s", filepath, _describe_exception(exc))
        return None

    async def _create(self, entry: Entry, name: str, options: SaveOptions) -> FileRecord:
        dir_id = await self._storage.folder_id(options.folder_path)
        source = await self._fetch_entry.execute(entry, options)
        try:
            record = await self._storage.create(
                source, name=name, dir_id=dir_id, content_type=options.content_type
            )
        finally:
            if source is not entry.filestream:
                await close_byte_source(source)

        # Diagnostics only: the file exists already, warn at the first run
        mime_matches_path(record.mime, record.name)
        size_is_non_zero(record.size, record.name)
        return record

    def _handle_failure(self, entry: Entry, exc: Exception, created: bool = False) -> SaveOutcome:
        """Failed outcome for the input entry; ``created`` stays set when the file was stored."""
        if error_status(exc, (StorageError, DiskQuotaExceededError)) == QUOTA_EXCEEDED_STATUS:
            quota_error = DiskQuotaExceededError()
            quota_error.__cause__ = exc
            logger.warning(
                "%s while saving %s: %s", quota_error, entry.label, _describe_exception(exc)
            )
            return SaveOutcome(entry=entry, created=created, failed=True, error=str(quota_error))

        logger.warning("SAVE_FILE_FAILED")
        logger.warning(
            "Error caught while trying to save the file %s: %s",
            entry.label,
            _describe_exception(exc),
        )
        return SaveOutcome(
            entry=entry, created=created, failed=True, error=_describe_exception(exc)
        )
