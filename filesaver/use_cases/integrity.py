"""Integrity checks deciding whether a stored file can be trusted."""
from __future__ import annotations

import logging
import mimetypes
import posixpath
from dataclasses import dataclass
from typing import Literal, Optional

from filesaver.models import FileRecord

logger = logging.getLogger(__name__)


IntegrityAction = Literal["reuse", "replace"]


@dataclass(frozen=True)
class IntegrityDecision:
    """Result of checking an already stored file."""

    action: IntegrityAction
    reason: str


def lookup_mime(extension: str) -> Optional[str]:
    """Media type registered for an extension (without dot), None if unknown."""
    mime, _ = mimetypes.guess_type(f"file.{extension}", strict=False)
    return mime


def mime_matches_path(mime: Optional[str], filepath: str) -> bool:
    """
    False only when the path has a known extension whose media type is not ``mime``.

    Missing extension, missing mime or unknown extension all pass.
    """
    extension = posixpath.splitext(filepath)[1][1:]
    if not extension or not mime:
        return True
    expected = lookup_mime(extension)
    if expected is None or expected == mime:
        return True
    logger.warning("%s and %s do not correspond", filepath, mime)
    logger.warning("BAD_MIME_TYPE")
    return False


def size_is_non_zero(size: Optional[int], name: str = "") -> bool:
    if size == 0:
        logger.warning("%s is empty", name or "file")
        logger.warning("BAD_FILE_SIZE")
        return False
    return True


class CheckIntegrityUseCase:
    """Decide whether a stored record can be reused for ``filepath``."""

    @staticmethod
    def execute(record: FileRecord, filepath: str) -> IntegrityDecision:
        if not mime_matches_path(record.mime, filepath):
            return IntegrityDecision(action="replace", reason="bad_mime_type")
        if not size_is_non_zero(record.size, record.name):
            return IntegrityDecision(action="replace", reason="bad_file_size")
        return IntegrityDecision(action="reuse", reason="valid")
