"""Configuration module - exports Settings, the YAML loaders and a module-level singleton."""

from src.config.loader import (
    AppConfig,
    EmbeddingSettings,
    IngestionSettings,
    RagSettings,
    TocFilterSettings,
    load_app_config,
    load_config,
)
from src.config.settings import Settings

settings = Settings()

__all__ = [
    "AppConfig",
    "EmbeddingSettings",
    "IngestionSettings",
    "RagSettings",
    "Settings",
    "TocFilterSettings",
    "load_app_config",
    "load_config",
    "settings",
]
