"""Tests for storage and transport adapters."""
import json

import httpx
import pytest

from filesaver.errors import FetchError, StorageError
from filesaver.models import FileRecord
from filesaver.services.api_client import ROOT_DIR_ID, StorageAPIClient
from filesaver.services.storage import StorageService
from filesaver.services.transport import HTTPTransport, RequestDescriptor, ResponseStream


def _file_doc(file_id, name, mime="application/pdf", size="10", doc_type="file"):
    return {
        "data": {
            "type": "io.cozy.files",
            "id": file_id,
            "attributes": {"type": doc_type, "name": name, "mime": mime, "size": size},
        }
    }


def _api_client(handler) -> StorageAPIClient:
    client = httpx.AsyncClient(
        base_url="https://storage.example.com", transport=httpx.MockTransport(handler)
    )
    return StorageAPIClient(
        "https://storage.example.com", client=client, max_retries=2, retry_delay=0
    )


class TestStorageService:
    @pytest.mark.asyncio
    async def test_stat_by_path_returns_record(self):
        def handler(request):
            assert request.url.path == "/files/metadata"
            assert request.url.params["Path"] == "/Bills/bill.pdf"
            return httpx.Response(200, json=_file_doc("f1", "bill.pdf"))

        async with _api_client(handler) as api:
            record = await StorageService(api).stat_by_path("/Bills/bill.pdf")

        assert record == FileRecord(id="f1", name="bill.pdf", mime="application/pdf", size=10)

    @pytest.mark.asyncio
    async def test_stat_by_path_returns_none_on_404(self):
        def handler(request):
            return httpx.Response(404, json={"errors": [{"status": "404"}]})

        async with _api_client(handler) as api:
            assert await StorageService(api).stat_by_path("/Bills/missing.pdf") is None

    @pytest.mark.asyncio
    async def test_stat_by_path_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=_file_doc("f1", "bill.pdf"))

        async with _api_client(handler) as api:
            record = await StorageService(api).stat_by_path("/Bills/bill.pdf")

        assert record.id == "f1"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_create_uploads_bytes_with_content_type(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.read()
            return httpx.Response(201, json=_file_doc("new", "bill.pdf", size="4"))

        async with _api_client(handler) as api:
            record = await StorageService(api).create(b"%PDF", name="bill.pdf", dir_id="dir-1")

        assert record.id == "new"
        assert seen["path"] == "/files/dir-1"
        assert seen["params"] == {"Type": "file", "Name": "bill.pdf"}
        assert seen["content_type"] == "application/pdf"
        assert seen["body"] == b"%PDF"

    @pytest.mark.asyncio
    async def test_create_streams_async_source_and_forces_type(self):
        seen = {}

        async def chunks():
            yield b"ab"
            yield b"cd"

        async def handler(request):
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = await request.aread()
            return httpx.Response(201, json=_file_doc("new", "report", size="4"))

        async with _api_client(handler) as api:
            await StorageService(api).create(chunks(), name="report", dir_id="d", content_type="text/csv")

        assert seen == {"content_type": "text/csv", "body": b"abcd"}

    @pytest.mark.asyncio
    async def test_create_raises_typed_quota_error(self):
        def handler(request):
            return httpx.Response(413, json={"errors": [{"status": "413", "title": "Quota exceeded"}]})

        async with _api_client(handler) as api:
            with pytest.raises(StorageError) as excinfo:
                await StorageService(api).create(b"x", name="a.pdf", dir_id="d")

        assert excinfo.value.status == 413

    @pytest.mark.asyncio
    async def test_trash_by_id(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=_file_doc("f1", "a.pdf"))

        async with _api_client(handler) as api:
            await StorageService(api).trash_by_id("f1")

        assert seen == [("DELETE", "/files/f1")]

    @pytest.mark.asyncio
    async def test_folder_id_creates_missing_parents_and_caches(self):
        created = []
        stats = []

        def handler(request):
            if request.url.path == "/files/metadata":
                path = request.url.params["Path"]
                stats.append(path)
                if path == "/Administrative":
                    return httpx.Response(200, json=_file_doc("dir-admin", "Administrative", doc_type="directory"))
                return httpx.Response(404)
            name = request.url.params["Name"]
            created.append((request.url.path, name))
            return httpx.Response(201, json=_file_doc(f"dir-{name.lower()}", name, doc_type="directory"))

        async with _api_client(handler) as api:
            storage = StorageService(api)
            first = await storage.folder_id("/Administrative/Bills")
            second = await storage.folder_id("Administrative/Bills/")

        assert first == second == "dir-bills"
        assert created == [("/files/dir-admin", "Bills")]
        assert stats.count("/Administrative/Bills") == 2

    @pytest.mark.asyncio
    async def test_root_folder(self):
        async with _api_client(lambda request: httpx.Response(500)) as api:
            assert await StorageService(api).folder_id("/") == ROOT_DIR_ID


class TestHTTPTransport:
    @pytest.mark.asyncio
    async def test_stream_response(self):
        def handler(request):
            assert request.headers["user-agent"] == "test-agent"
            return httpx.Response(200, content=b"0123456789", headers={"content-type": "application/pdf; q=1"})

        async with HTTPTransport(user_agent="test-agent", transport=httpx.MockTransport(handler)) as transport:
            stream = await transport.request(RequestDescriptor(url="https://example.com/a.pdf"))
            assert isinstance(stream, ResponseStream)
            assert stream.content_type == "application/pdf"
            body = b"".join([chunk async for chunk in stream])

        assert body == b"0123456789"

    @pytest.mark.asyncio
    async def test_buffered_response(self):
        def handler(request):
            assert request.method == "POST"
            assert json.loads(request.read()) == {"id": 1}
            return httpx.Response(200, content=b"raw")

        async with HTTPTransport(transport=httpx.MockTransport(handler)) as transport:
            body = await transport.request(
                RequestDescriptor(url="https://example.com/export", method="POST", options={"json": {"id": 1}}),
                stream=False,
            )

        assert body == b"raw"

    @pytest.mark.asyncio
    async def test_cookies_persist_with_jar(self):
        cookies_seen = []

        def handler(request):
            cookies_seen.append(request.headers.get("cookie"))
            if request.url.path == "/login":
                return httpx.Response(200, headers={"set-cookie": "session=abc; Path=/"})
            return httpx.Response(200, content=b"ok")

        async with HTTPTransport(transport=httpx.MockTransport(handler)) as transport:
            await transport.request(RequestDescriptor(url="https://example.com/login"), stream=False)
            await transport.request(RequestDescriptor(url="https://example.com/file"), stream=False)
            await transport.request(RequestDescriptor(url="https://example.com/file", jar=False), stream=False)

        assert cookies_seen == [None, "session=abc", None]

    @pytest.mark.asyncio
    async def test_error_status_raises_fetch_error(self):
        async with HTTPTransport(transport=httpx.MockTransport(lambda r: httpx.Response(404))) as transport:
            with pytest.raises(FetchError) as excinfo:
                await transport.request(RequestDescriptor(url="https://example.com/missing.pdf"))

        assert excinfo.value.status == 404
        assert excinfo.value.url == "https://example.com/missing.pdf"

    @pytest.mark.asyncio
    async def test_requires_context(self):
        with pytest.raises(RuntimeError):
            await HTTPTransport().request(RequestDescriptor(url="https://example.com/a"))
