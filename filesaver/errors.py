"""
Error taxonomy for file saving.

Per-entry failures are caught at the entry boundary and logged; only
SaveTimeoutError escapes to the batch level.
"""
from typing import Any, Optional, Tuple, Union


class FileSaverError(Exception):
    """Base class for filesaver errors."""


class MissingFilenameError(FileSaverError):
    """Raised when an entry carries a stream but no usable file name."""

    def __init__(self, message: str = "Missing filename property"):
        super().__init__(message)


class SaveTimeoutError(FileSaverError, TimeoutError):
    """Raised when the batch deadline has passed before an entry starts."""

    def __init__(self, deadline: float, folder_path: str = ""):
        self.deadline = deadline
        self.folder_path = folder_path
        super().__init__(f"TIMEOUT while saving files into {folder_path or '/'}")


class UpstreamError(FileSaverError):
    """Error returned by a remote collaborator, with its HTTP status."""

    def __init__(self, message: str, status: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status = status
        self.detail = detail


class StorageError(UpstreamError):
    """The storage service rejected a request."""


class FetchError(UpstreamError):
    """Downloading an entry's content failed."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message, status=status)
        self.url = url


class DiskQuotaExceededError(FileSaverError):
    """The storage service refused the file because the quota is full."""

    def __init__(self, message: str = "DISK_QUOTA_EXCEEDED", status: int = 413):
        super().__init__(message)
        self.status = status


def error_status(
    exc: BaseException, error_type: Union[type, Tuple[type, ...]] = BaseException
) -> Optional[int]:
    """
    Return the typed HTTP status carried by ``exc`` or its cause chain.

    Only links that are instances of ``error_type`` are considered, so a
    storage status is never confused with one from the download source.
    """
    current: Optional[BaseException] = exc
    seen = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        status = getattr(current, "status", None)
        if status is not None and isinstance(current, error_type):
            try:
                return int(status)
            except (TypeError, ValueError):
                return None
        current = current.__cause__
    return None
