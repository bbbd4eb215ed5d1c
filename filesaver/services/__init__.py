"""Collaborator adapters for filesaver."""
from .api_client import StorageAPIClient
from .storage import StorageService
from .transport import HTTPTransport, RequestDescriptor, ResponseStream

__all__ = [
    "StorageAPIClient",
    "StorageService",
    "HTTPTransport",
    "RequestDescriptor",
    "ResponseStream",
]
