"""Obtain the bytes of one entry."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Dict

from filesaver.models import Entry, SaveOptions
from filesaver.protocols import ITransport
from filesaver.services.transport import RequestDescriptor
from filesaver.utils.streams import body_only

logger = logging.getLogger(__name__)


def build_request_descriptor(entry: Entry) -> RequestDescriptor:
    """Default GET with session cookies, overridden key by key by the entry's request options."""
    options: Dict[str, Any] = {"url": entry.fileurl, "method": "GET", "jar": True}
    overrides = dict(entry.request_options or {})
    if "uri" in overrides:
        overrides.setdefault("url", overrides.pop("uri"))
    options.update(overrides)
    return RequestDescriptor.from_options(options)


class FetchEntryUseCase:
    """Return a byte source for an entry. Transport errors propagate; no retry."""

    def __init__(self, transport: ITransport):
        self._transport = transport

    async def execute(self, entry: Entry, options: SaveOptions) -> Any:
        if entry.filestream is not None:
            return entry.filestream

        descriptor = build_request_descriptor(entry)

        if options.content_type:
            # The caller forces the media type: drop the response framing so
            # the negotiated content type never reaches the storage service.
            response = await self._transport.request(descriptor, stream=True)
            return body_only(response)

        if options.post_process_file:
            logger.warning(
                "Be careful, post_process_file option is deprecated. "
                "You should use the filestream attribute in each entry instead"
            )
            body = await self._transport.request(descriptor, stream=False)
            result = options.post_process_file(body)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, str):
                result = result.encode("utf-8")
            return result

        return await self._transport.request(descriptor, stream=True)
