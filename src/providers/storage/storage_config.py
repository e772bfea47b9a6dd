"""Startup-time selection of the object storage backend.

The backend is decided exactly once, when the application starts:
:func:`resolve_storage_config` reads :class:`~src.config.settings.Settings`,
probes the HTTP object store when one is configured, and returns a frozen
:class:`StorageConfig`.  If the probe fails the returned config points at
local storage and records why.  :func:`create_object_storage` then builds
the provider that is injected into the document service and the ingestion
coordinator.  Nothing switches backends after startup.
"""

from __future__ import annotations

from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict

from src.config.settings import Settings
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.providers.storage.http_storage_provider import HttpObjectStorage
from src.providers.storage.local_storage_provider import LocalObjectStorage
from src.utils.errors import ConfigurationError
from src.utils.logging import get_logger

_logger = get_logger(__name__)


class StorageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    backend: Literal["local", "http"] = "local"
    local_root: str = "data/uploads"
    http_base_url: str = ""
    http_token: str = ""
    bucket: str = "documents"
    fallback_reason: str | None = None


def resolve_storage_config(
    settings: Settings,
    probe_timeout: float = 3.0,
) -> StorageConfig:
    """Build the storage config, falling back to local if HTTP is unreachable."""
    backend = settings.storage_backend.lower()
    if backend not in ("local", "http"):
        raise ConfigurationError(message=f"Unknown storage backend: {settings.storage_backend}")

    config = StorageConfig(
        backend=backend,
        local_root=settings.storage_local_root,
        http_base_url=settings.storage_http_base_url,
        http_token=settings.storage_http_token,
        bucket=settings.storage_bucket,
    )
    if config.backend == "local":
        return config

    reason = _probe(config, probe_timeout)
    if reason is None:
        _logger.info("object_storage_selected", backend="http", base_url=config.http_base_url)
        return config

    _logger.warning("object_storage_fallback_local", reason=reason)
    return config.model_copy(update={"backend": "local", "fallback_reason": reason})


def create_object_storage(
    config: StorageConfig,
    http_client: httpx.AsyncClient | None = None,
) -> IObjectStorageProvider:
    """Instantiate the provider described by ``config``."""
    if config.backend == "http":
        return HttpObjectStorage(
            http_client=http_client or httpx.AsyncClient(timeout=30.0),
            base_url=config.http_base_url,
            bucket=config.bucket,
            token=config.http_token,
        )
    return LocalObjectStorage(root=config.local_root, bucket=config.bucket)


def _probe(config: StorageConfig, timeout: float) -> str | None:
    """Return None if the HTTP store answers, else a short reason."""
    if not config.http_base_url:
        return "storage_http_base_url is not set"
    try:
        response = httpx.get(
            f"{config.http_base_url.rstrip('/')}/bucket/{config.bucket}",
            headers={"Authorization": f"Bearer {config.http_token}"} if config.http_token else {},
            timeout=timeout,
        )
    except httpx.HTTPError as exc:
        return f"unreachable: {exc}"
    if response.status_code >= 500:
        return f"unhealthy: HTTP {response.status_code}"
    return None


def build_object_storage(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> tuple[StorageConfig, IObjectStorageProvider]:
    """Resolve the config and build its provider in one step."""
    config = resolve_storage_config(settings)
    return config, create_object_storage(config, http_client=http_client)
