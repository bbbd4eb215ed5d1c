"""
Storage Service - Single Responsibility: file operations in remote storage.

Wraps the files API client with path lookups and a folder cache.
"""
import logging
import mimetypes
from typing import Any, Dict, Optional

from ..errors import StorageError
from ..models import FileRecord
from ..utils.streams import iter_byte_source
from .api_client import ROOT_DIR_ID, StorageAPIClient

logger = logging.getLogger(__name__)


class StorageService:
    """
    Service for storing files in the remote hierarchical storage.

    Implements IStorageClient protocol.
    """

    def __init__(self, client: StorageAPIClient):
        """
        Initialize storage service.

        Args:
            client: Files API client (already entered)
        """
        self._client = client
        self._folder_cache: Dict[str, str] = {}  # path -> id cache

    async def stat_by_path(self, path: str) -> Optional[FileRecord]:
        """
        Get file record by path.

        Returns:
            FileRecord if something is stored at ``path``, None on 404
        """
        path = path if path.startswith("/") else f"/{path}"
        try:
            payload = await self._client.get_metadata(path)
        except StorageError as exc:
            if exc.status == 404:
                return None
            raise
        return FileRecord.from_api(payload)

    async def create(
        self,
        source: Any,
        name: str,
        dir_id: str,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        """
        Create a file from a byte source.

        The media type is, in order: the forced ``content_type``, the one
        announced by the source (a fetched response), a guess from ``name``.
        """
        mime = content_type or getattr(source, "content_type", None)
        if not mime:
            mime, _ = mimetypes.guess_type(name)
        if isinstance(source, (bytes, bytearray)):
            content = bytes(source)
        else:
            content = iter_byte_source(source)

        logger.debug("Creating %s in folder %s (%s)", name, dir_id, mime or "unknown type")
        payload = await self._client.upload_file(dir_id, name, content, mime)
        return FileRecord.from_api(payload)

    async def trash_by_id(self, file_id: str) -> None:
        logger.debug("Trashing file %s", file_id)
        await self._client.trash(file_id)

    async def folder_id(self, path: str) -> str:
        """
        Resolve folder path to its id, creating parents as needed. Uses cache.

        Args:
            path: Folder path (e.g., "/Administrative/Bills")
        """
        path = path.strip("/")
        if not path:
            return ROOT_DIR_ID

        if path in self._folder_cache:
            logger.debug("Folder found in cache: /%s", path)
            return self._folder_cache[path]

        node = await self.stat_by_path(f"/{path}")
        if node:
            self._folder_cache[path] = node.id
            return node.id

        logger.info("Creating folder structure: /%s", path)
        current_id = ROOT_DIR_ID
        current_path = ""
        for part in path.split("/"):
            current_path = f"{current_path}/{part}" if current_path else part

            if current_path in self._folder_cache:
                current_id = self._folder_cache[current_path]
                continue

            node = await self.stat_by_path(f"/{current_path}")
            if node:
                current_id = node.id
            else:
                logger.info("Creating folder: %s in parent %s", part, current_id)
                created = await self._client.create_directory(current_id, part)
                current_id = FileRecord.from_api(created).id

            self._folder_cache[current_path] = current_id

        return current_id
