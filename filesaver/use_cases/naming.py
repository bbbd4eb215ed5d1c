"""Resolve the on-disk name of an entry."""
from __future__ import annotations

import logging
import posixpath
import re
from typing import Optional
from urllib.parse import urlsplit

from filesaver.errors import MissingFilenameError
from filesaver.models import Entry
from filesaver.utils.streams import describe_byte_source

logger = logging.getLogger(__name__)

_ONLY_DOTS = re.compile(r"^\.+\Z")
# Stripped, not replaced: names already stored were produced this way
_FORBIDDEN_CHARS = re.compile(r'[/?<>\\:*|"]')


def sanitize_file_name(filename: str) -> str:
    return _FORBIDDEN_CHARS.sub("", _ONLY_DOTS.sub("", filename))


def _source_url(entry: Entry) -> Optional[str]:
    if entry.fileurl:
        return entry.fileurl
    options = entry.request_options or {}
    return options.get("url") or options.get("uri")


def resolve_file_name(entry: Entry) -> str:
    """
    Derive a safe file name for an entry.

    An explicit ``filename`` wins. A stream carries no name, so an entry
    with a stream and no ``filename`` is rejected. Otherwise the last
    segment of the URL path is used.

    Raises:
        MissingFilenameError: stream without filename, or nothing to derive from
    """
    if entry.filename:
        filename = entry.filename
    elif entry.filestream is not None:
        logger.debug("Entry without filename: %s", entry.label)
        logger.info(describe_byte_source(entry.filestream))
        raise MissingFilenameError()
    else:
        url = _source_url(entry)
        if not url:
            raise MissingFilenameError("Missing filename property and no url to derive it from")
        filename = posixpath.basename(urlsplit(url).path.rstrip("/"))
    return sanitize_file_name(filename)
