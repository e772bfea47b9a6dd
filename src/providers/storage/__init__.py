"""Object storage providers for raw uploaded files.

Two implementations of IObjectStorageProvider:
    - LocalObjectStorage - files on local disk (default, and startup fallback)
    - HttpObjectStorage  - bucket-style HTTP object store via httpx

The backend is resolved once at startup by resolve_storage_config().
"""

from src.providers.storage.http_storage_provider import HttpObjectStorage
from src.providers.storage.local_storage_provider import LocalObjectStorage
from src.providers.storage.storage_config import (
    StorageConfig,
    build_object_storage,
    create_object_storage,
    resolve_storage_config,
)

__all__ = [
    "HttpObjectStorage",
    "LocalObjectStorage",
    "StorageConfig",
    "build_object_storage",
    "create_object_storage",
    "resolve_storage_config",
]
