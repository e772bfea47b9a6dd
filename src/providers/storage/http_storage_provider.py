"""Bucket-style HTTP object storage via httpx.

Talks to a storage service with the common REST layout:

* ``POST {base}/object/{bucket}/{path}`` uploads (``x-upsert: true``)
* ``GET  {base}/object/public/{bucket}/{path}`` is the public URL returned
  by :meth:`put` and read by :meth:`get`
* ``DELETE {base}/object/{bucket}/{path}`` removes an object

The ``httpx.AsyncClient`` is injected via the constructor for testability.
"""

from __future__ import annotations

import httpx

from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.utils.errors import FetchError, StorageError
from src.utils.logging import get_logger


class HttpObjectStorage(IObjectStorageProvider):
    """Object storage backed by an HTTP bucket API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        bucket: str = "documents",
        token: str = "",
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._logger = get_logger(__name__)

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/object/public/{self._bucket}/{path}"

    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        headers = {
            **self._headers,
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "true",
        }
        url = f"{self._base_url}/object/{self._bucket}/{path}"
        try:
            response = await self._http.post(url, content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(
                message=f"Upload of {path} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        self._logger.debug("http_storage_put", path=path, size=len(data))
        return self.public_url(path)

    async def get(self, url: str) -> bytes:
        try:
            response = await self._http.get(url, headers=self._headers, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchError(
                message=f"Failed to fetch file: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return response.content

    async def delete(self, path: str) -> None:
        url = f"{self._base_url}/object/{self._bucket}/{path}"
        try:
            response = await self._http.delete(url, headers=self._headers)
            if response.status_code != 404:
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(
                message=f"Delete of {path} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "http-storage"
