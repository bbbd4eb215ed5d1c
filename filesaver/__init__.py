"""
Filesaver - Bounded-concurrency saving of remote files into a storage service.

Each entry names a file by URL, by a pre-fetched stream, or by custom
request options. Files already stored and valid are reused, invalid ones
are replaced, and a batch deadline truncates the run cleanly.

Usage:
    from filesaver import FileSaver, SaverConfig, Entry

    async with FileSaver(SaverConfig.from_env()) as saver:
        entries = await saver.save_all(
            [
                {"fileurl": "https://example.com/bill_2024_01.pdf"},
                Entry(filestream=open("bill.pdf", "rb"), filename="bill.pdf"),
            ],
            "/Administrative/Bills",
            concurrency=2,
        )

    # Entries without file_document failed or were not eligible
    missing = [e for e in entries if e.can_be_saved and e.file_document is None]
"""
from .errors import (
    DiskQuotaExceededError,
    FetchError,
    FileSaverError,
    MissingFilenameError,
    SaveTimeoutError,
    StorageError,
)
from .models import Entry, FileRecord, SaveOptions, SaveOutcome, SaverConfig
from .orchestrator import BatchSaveResult, FileSaver, SaveBatchCoordinator, save_files
from .services import HTTPTransport, StorageAPIClient, StorageService

__version__ = "0.1.0"
__all__ = [
    # Main
    "FileSaver",
    "SaveBatchCoordinator",
    "BatchSaveResult",
    "save_files",
    # Models
    "Entry",
    "FileRecord",
    "SaveOptions",
    "SaveOutcome",
    "SaverConfig",
    # Services
    "HTTPTransport",
    "StorageAPIClient",
    "StorageService",
    # Errors
    "FileSaverError",
    "MissingFilenameError",
    "SaveTimeoutError",
    "DiskQuotaExceededError",
    "StorageError",
    "FetchError",
]
