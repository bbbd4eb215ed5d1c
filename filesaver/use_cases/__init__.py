"""Application use cases for file saving workflows."""

from .fetch import FetchEntryUseCase, build_request_descriptor
from .integrity import (
    CheckIntegrityUseCase,
    IntegrityDecision,
    lookup_mime,
    mime_matches_path,
    size_is_non_zero,
)
from .naming import resolve_file_name, sanitize_file_name
from .save_entry import SaveEntryUseCase, check_deadline

__all__ = [
    "FetchEntryUseCase",
    "build_request_descriptor",
    "CheckIntegrityUseCase",
    "IntegrityDecision",
    "lookup_mime",
    "mime_matches_path",
    "size_is_non_zero",
    "resolve_file_name",
    "sanitize_file_name",
    "SaveEntryUseCase",
    "check_deadline",
]
