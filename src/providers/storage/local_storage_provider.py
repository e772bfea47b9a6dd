"""Local-filesystem object storage.

Objects live under ``{root}/{bucket}/{path}`` and are addressed by
``local://{bucket}/{path}`` URLs.  Used in development, in tests, and as
the startup fallback when the HTTP object store is unreachable.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.utils.errors import FetchError, StorageError

logger = structlog.get_logger(logger_name=__name__)

_SCHEME = "local://"


class LocalObjectStorage(IObjectStorageProvider):
    """Stores raw uploads as files on local disk."""

    def __init__(self, root: str = "data/uploads", bucket: str = "documents") -> None:
        self._bucket = bucket
        self._base = (Path(root) / bucket).resolve()

    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self._resolve(path, error_cls=StorageError)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to write {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("local_storage_put", path=path, size=len(data))
        return f"{_SCHEME}{self._bucket}/{path}"

    async def get(self, url: str) -> bytes:
        prefix = f"{_SCHEME}{self._bucket}/"
        if not url.startswith(prefix):
            raise FetchError(
                message=f"Not a URL of this store: {url}",
                provider_name=self.get_provider_name(),
            )
        target = self._resolve(url[len(prefix):], error_cls=FetchError)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as exc:
            raise FetchError(
                message=f"Failed to fetch file: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete(self, path: str) -> None:
        target = self._resolve(path, error_cls=StorageError)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to delete {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "local-storage"

    # ------------------------------------------------------------------

    def _resolve(self, path: str, error_cls: type[StorageError] | type[FetchError]) -> Path:
        """Map an object path to a file, refusing paths that escape the bucket."""
        target = (self._base / path).resolve()
        if not target.is_relative_to(self._base):
            raise error_cls(
                message=f"Object path escapes storage root: {path}",
                provider_name=self.get_provider_name(),
            )
        return target

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
