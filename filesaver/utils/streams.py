"""Helpers for the byte sources an entry can carry."""
import asyncio
import logging
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB chunks


async def iter_byte_source(source: Any, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """
    Adapt any supported byte source into an async chunk iterator.

    Supported: bytes/bytearray/memoryview, binary file-like objects,
    async iterables of bytes, sync iterables of bytes.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield bytes(source)
        return

    if hasattr(source, "__aiter__"):
        async for chunk in source:
            yield chunk
        return

    read = getattr(source, "read", None)
    if callable(read):
        # Run blocking reads in thread pool to avoid blocking the event loop
        while True:
            chunk = await asyncio.to_thread(read, chunk_size)
            if not chunk:
                break
            yield chunk
        return

    if hasattr(source, "__iter__") and not isinstance(source, str):
        for chunk in source:
            yield chunk
        return

    raise TypeError(f"Unsupported byte source: {type(source).__name__}")


async def read_byte_source(source: Any) -> bytes:
    """Buffer a byte source fully."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    chunks = []
    async for chunk in iter_byte_source(source):
        chunks.append(chunk)
    return b"".join(chunks)


async def body_only(source: Any) -> AsyncIterator[bytes]:
    """
    Strip response framing from a stream, keeping only the body chunks.

    The result has no ``content_type`` attribute, so the storage service
    never sees the transport's negotiated media type.
    """
    try:
        async for chunk in iter_byte_source(source):
            yield chunk
    finally:
        await close_byte_source(source)


async def close_byte_source(source: Any) -> None:
    aclose = getattr(source, "aclose", None)
    if callable(aclose):
        await aclose()


def describe_byte_source(source: Any) -> str:
    """Describe what kind of object a byte source is, for diagnostics."""
    if source is None:
        return "no filestream"
    name = getattr(type(source), "__name__", None)
    if name:
        return f"The filestream attribute is an instance of {name}"
    return f"The filestream attribute is a {type(source)}"
