"""HTTP transport adapter for fetching entry content."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Union

import httpx

from ..errors import FetchError

logger = logging.getLogger(__name__)

# Keys forwarded to httpx.AsyncClient.build_request
_HTTPX_REQUEST_KEYS = {"headers", "params", "data", "json", "content", "files", "cookies", "timeout"}


@dataclass(frozen=True)
class RequestDescriptor:
    """Immutable description of one fetch request."""

    url: str
    method: str = "GET"
    jar: bool = True
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "RequestDescriptor":
        merged = dict(options)
        url = merged.pop("url", None) or merged.pop("uri", None)
        merged.pop("uri", None)
        if not url:
            raise ValueError("request options must define a url")
        method = str(merged.pop("method", "GET")).upper()
        jar = bool(merged.pop("jar", True))
        return cls(url=url, method=method, jar=jar, options=merged)


class ResponseStream:
    """
    Streamed HTTP response body.

    Async iterable of body chunks. Closes the underlying response once
    exhausted or when ``aclose`` is called.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._closed = False

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def content_type(self) -> Optional[str]:
        value = self._response.headers.get("content-type")
        if not value:
            return None
        return value.split(";", 1)[0].strip() or None

    @property
    def content_length(self) -> Optional[int]:
        value = self._response.headers.get("content-length")
        return int(value) if value and value.isdigit() else None

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await self._response.aclose()


class HTTPTransport:
    """
    HTTP transport adapter for entry downloads.

    Implements ITransport protocol. One shared client keeps cookies across
    requests when a descriptor asks for the jar.
    """

    def __init__(
        self,
        user_agent: str = "filesaver/0.1",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._user_agent = user_agent
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        if self._client is None:
            self._client = self._new_client()
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": self._user_agent},
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def request(
        self, descriptor: RequestDescriptor, stream: bool = True
    ) -> Union[ResponseStream, bytes]:
        if not self._client:
            raise RuntimeError("HTTPTransport not initialized. Use 'async with' context.")

        options = {k: v for k, v in descriptor.options.items() if k in _HTTPX_REQUEST_KEYS}
        ignored = set(descriptor.options) - _HTTPX_REQUEST_KEYS - {"follow_redirects"}
        if ignored:
            logger.debug("Ignoring unsupported request options: %s", sorted(ignored))
        follow_redirects = descriptor.options.get("follow_redirects", True)

        if descriptor.jar:
            client = self._client
            throwaway = None
        else:
            throwaway = client = self._new_client()

        logger.debug("%s %s (jar=%s)", descriptor.method, descriptor.url, descriptor.jar)
        try:
            request = client.build_request(descriptor.method, descriptor.url, **options)
            response = await client.send(
                request, stream=stream, follow_redirects=follow_redirects
            )
        except httpx.HTTPError as exc:
            if throwaway:
                await throwaway.aclose()
            raise FetchError(
                f"Request to {descriptor.url} failed: {exc}", url=descriptor.url
            ) from exc

        if response.status_code >= 400:
            if stream:
                await response.aclose()
            if throwaway:
                await throwaway.aclose()
            raise FetchError(
                f"HTTP {response.status_code} on {descriptor.method} {descriptor.url}",
                status=response.status_code,
                url=descriptor.url,
            )

        if not stream:
            if throwaway:
                await throwaway.aclose()
            return response.content

        if throwaway:
            return _ClientBoundStream(response, throwaway)
        return ResponseStream(response)


class _ClientBoundStream(ResponseStream):
    """Response stream that also closes the throwaway client it came from."""

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient):
        super().__init__(response)
        self._owner = client

    async def aclose(self) -> None:
        already_closed = self._closed
        await super().aclose()
        if not already_closed:
            await self._owner.aclose()
