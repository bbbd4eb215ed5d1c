"""Tests for entry fetching."""
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from filesaver.errors import FetchError
from filesaver.models import Entry, SaveOptions
from filesaver.services.transport import RequestDescriptor
from filesaver.use_cases.fetch import FetchEntryUseCase, build_request_descriptor


def _options(**kwargs) -> SaveOptions:
    return SaveOptions.build("/Bills", timeout=9_999_999_999.0, **kwargs)


class _FakeStream:
    content_type = "text/html"

    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for chunk in self._chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


def test_descriptor_defaults_to_get_with_cookie_jar():
    descriptor = build_request_descriptor(Entry(fileurl="https://example.com/a.pdf"))
    assert descriptor == RequestDescriptor(url="https://example.com/a.pdf", method="GET", jar=True)


def test_descriptor_entry_options_take_precedence():
    entry = Entry(
        fileurl="https://example.com/a.pdf",
        request_options={"method": "post", "jar": False, "data": {"id": "1"}, "headers": {"X-A": "1"}},
    )
    descriptor = build_request_descriptor(entry)
    assert descriptor.method == "POST"
    assert descriptor.jar is False
    assert descriptor.url == "https://example.com/a.pdf"
    assert descriptor.options == {"data": {"id": "1"}, "headers": {"X-A": "1"}}


def test_descriptor_accepts_uri_alias():
    entry = Entry(request_options={"uri": "https://example.com/export"})
    assert build_request_descriptor(entry).url == "https://example.com/export"


@pytest.mark.asyncio
async def test_filestream_is_returned_without_request():
    transport = Mock()
    transport.request = AsyncMock()
    stream = object()

    source = await FetchEntryUseCase(transport).execute(Entry(filestream=stream, filename="a"), _options())

    assert source is stream
    transport.request.assert_not_awaited()


@pytest.mark.asyncio
async def test_default_fetch_returns_stream():
    response = _FakeStream([b"abc"])
    transport = Mock()
    transport.request = AsyncMock(return_value=response)

    source = await FetchEntryUseCase(transport).execute(Entry(fileurl="https://example.com/a.pdf"), _options())

    assert source is response
    descriptor = transport.request.await_args.args[0]
    assert descriptor.url == "https://example.com/a.pdf"
    assert transport.request.await_args.kwargs == {"stream": True}


@pytest.mark.asyncio
async def test_forced_content_type_strips_response_framing():
    response = _FakeStream([b"ab", b"c"])
    transport = Mock()
    transport.request = AsyncMock(return_value=response)

    source = await FetchEntryUseCase(transport).execute(
        Entry(fileurl="https://example.com/a.pdf"), _options(content_type="application/pdf")
    )

    assert not hasattr(source, "content_type")
    chunks = [chunk async for chunk in source]
    assert chunks == [b"ab", b"c"]
    assert response.closed is True


@pytest.mark.asyncio
async def test_post_process_file_buffers_body_and_warns(caplog):
    transport = Mock()
    transport.request = AsyncMock(return_value=b"raw body")
    hook = Mock(return_value=b"processed")

    with caplog.at_level(logging.WARNING):
        source = await FetchEntryUseCase(transport).execute(
            Entry(fileurl="https://example.com/a.pdf"), _options(post_process_file=hook)
        )

    assert source == b"processed"
    hook.assert_called_once_with(b"raw body")
    assert transport.request.await_args.kwargs == {"stream": False}
    assert "deprecated" in caplog.text


@pytest.mark.asyncio
async def test_async_post_process_file_is_awaited():
    transport = Mock()
    transport.request = AsyncMock(return_value=b"raw")

    async def hook(body):
        return body.upper()

    source = await FetchEntryUseCase(transport).execute(
        Entry(fileurl="https://example.com/a.pdf"), _options(post_process_file=hook)
    )

    assert source == b"RAW"


@pytest.mark.asyncio
async def test_transport_errors_propagate():
    transport = Mock()
    transport.request = AsyncMock(side_effect=FetchError("HTTP 404", status=404))

    with pytest.raises(FetchError):
        await FetchEntryUseCase(transport).execute(Entry(fileurl="https://example.com/a.pdf"), _options())

    assert transport.request.await_count == 1


@pytest.mark.asyncio
async def test_post_process_file_text_result_is_encoded():
    transport = Mock()
    transport.request = AsyncMock(return_value=b"<html>report</html>")

    source = await FetchEntryUseCase(transport).execute(
        Entry(fileurl="https://example.com/report"),
        _options(post_process_file=lambda body: body.decode("utf-8").upper()),
    )

    assert source == "<HTML>REPORT</HTML>".encode("utf-8")
