"""
Protocols (Interfaces) for the collaborators the pipeline drives.

Following Interface Segregation Principle - small, focused interfaces.
"""
from typing import Any, Optional, Protocol, Union, runtime_checkable

from .models import FileRecord


@runtime_checkable
class IStorageClient(Protocol):
    """Interface for the remote hierarchical file storage."""

    async def stat_by_path(self, path: str) -> Optional[FileRecord]:
        """Get file record by path, None if nothing is stored there."""
        ...

    async def create(
        self,
        source: Any,
        name: str,
        dir_id: str,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        """Create a file from a byte source inside folder ``dir_id``."""
        ...

    async def trash_by_id(self, file_id: str) -> None:
        """Move a file to the trash."""
        ...

    async def folder_id(self, path: str) -> str:
        """Resolve (and create if missing) the folder at ``path``."""
        ...


@runtime_checkable
class ITransport(Protocol):
    """Interface for fetching remote content."""

    async def request(self, descriptor: Any, stream: bool = True) -> Union[Any, bytes]:
        """Issue a request; return a byte stream, or the buffered body when stream=False."""
        ...
