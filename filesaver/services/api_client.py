"""HTTP adapter for the storage service files API."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx

from ..errors import StorageError

ROOT_DIR_ID = "io.cozy.files.root-dir"


class StorageAPIClient:
    """
    HTTP client adapter for the files API (JSON:API documents).

    GET and DELETE are retried on 5xx and connection errors; uploads are
    sent once since their body is consumed.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url
        self._token = token
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            headers = {"Accept": "application/vnd.api+json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, headers=headers
            )
        return self

    async def __aexit__(self, *args):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_metadata(self, path: str) -> Dict[str, Any]:
        response = await self._send_idempotent("GET", "/files/metadata", params={"Path": path})
        return response.json()

    async def upload_file(
        self,
        dir_id: str,
        name: str,
        content: Any,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        client = self._require_client()
        headers = {"Content-Type": content_type or "application/octet-stream"}
        try:
            response = await client.post(
                f"/files/{dir_id}",
                params={"Type": "file", "Name": name},
                content=content,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Upload of {name} failed: {exc}") from exc
        self._raise_for_status(response, "POST", f"/files/{dir_id}")
        return response.json()

    async def create_directory(self, parent_id: str, name: str) -> Dict[str, Any]:
        client = self._require_client()
        try:
            response = await client.post(
                f"/files/{parent_id}", params={"Type": "directory", "Name": name}
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Creating folder {name} failed: {exc}") from exc
        self._raise_for_status(response, "POST", f"/files/{parent_id}")
        return response.json()

    async def trash(self, file_id: str) -> None:
        await self._send_idempotent("DELETE", f"/files/{file_id}")

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("StorageAPIClient not initialized. Use 'async with' context.")
        return self._client

    async def _send_idempotent(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        client = self._require_client()
        last_exception: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                response = await client.request(method, endpoint, **kwargs)

                if response.status_code >= 500 and attempt < self._max_retries - 1:
                    await asyncio.sleep(self._retry_delay * (attempt + 1))
                    continue

                self._raise_for_status(response, method, endpoint)
                return response
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(self._retry_delay * (attempt + 1))
                    continue
                raise StorageError(f"{method} {endpoint} failed: {exc}") from exc

        raise StorageError(
            f"Failed to {method} {endpoint} after {self._max_retries} attempts"
        ) from last_exception

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, endpoint: str) -> None:
        if response.status_code < 400:
            return
        try:
            error_detail = response.json()
        except Exception:
            error_detail = response.text
        raise StorageError(
            f"API error {response.status_code} on {method} {endpoint}: {error_detail}",
            status=response.status_code,
            detail=error_detail,
        )
