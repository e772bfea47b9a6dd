"""Abstract base class for raw-file object storage.

Uploaded files are written once under ``{document_id}/{sanitized_name}``
and read back by URL when the ingestion coordinator extracts them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (src/providers/storage/):
#   LocalObjectStorage - files under a local directory, local:// URLs
#   HttpObjectStorage  - bucket-style HTTP object store via httpx
class IObjectStorageProvider(ABC):
    """Contract for raw-file storage."""

    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Store ``data`` at ``path`` and return a URL that :meth:`get` accepts.

        Raises
        ------
        src.utils.errors.StorageError
            If the write fails.
        """

    @abstractmethod
    async def get(self, url: str) -> bytes:
        """Return the bytes stored at ``url``.

        Raises
        ------
        src.utils.errors.FetchError
            If the object is missing or cannot be read.
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the object at ``path``; missing objects are ignored."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this storage backend."""
