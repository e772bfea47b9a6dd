"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  - Static defaults checked into the repo
#   2. .env file           - Local developer overrides (not committed)
#   3. Environment vars    - Set at deploy time
#
# load_config() returns the merged dict; load_app_config() validates it
# into typed section models.  Invalid values (for example a chunk overlap
# that is not smaller than the chunk size) are rejected here, at startup,
# before any document is ingested.
#
# The _deep_merge helper does recursive dict merging:
#   base = {"rag": {"chunk_size": 1000}}
#   overrides = {"rag": {"openai_model": "gpt-4o-mini"}}
#   result = {"rag": {"chunk_size": 1000, "openai_model": "gpt-4o-mini"}}
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from src.config.settings import Settings
from src.utils.errors import ConfigurationError

_DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using only the "
    "provided documents. If the documents do not contain the answer, say so."
)


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------

class RagSettings(BaseModel):
    """Retrieval and generation knobs (``rag:`` section)."""

    model_config = ConfigDict(frozen=True)

    openai_model: str = "gpt-4o"
    embedding_model: str = "text-embedding-3-small"
    match_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    match_count: int = Field(default=5, ge=1)
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    system_prompt: str = _DEFAULT_SYSTEM_PROMPT
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, gt=0)
    strip_toc_blocks: bool = True

    @model_validator(mode="after")
    def _overlap_smaller_than_size(self) -> RagSettings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self


class EmbeddingSettings(BaseModel):
    """Embedding request policy (``embedding:`` section)."""

    model_config = ConfigDict(frozen=True)

    max_input_chars: int = Field(default=6000, gt=0)
    shrunk_input_chars: int = Field(default=2000, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=5, ge=1)
    base_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)
    dimension: int = Field(default=1536, gt=0)


class IngestionSettings(BaseModel):
    """Batching and worker behaviour (``ingestion:`` section)."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=3, ge=1)
    batch_delay_seconds: float = Field(default=0.5, ge=0)
    worker_max_attempts: int = Field(default=3, ge=1)
    worker_retry_delay_seconds: float = Field(default=2.0, ge=0)


class TocFilterSettings(BaseModel):
    """Noise-classifier threshold and phrase fingerprints (``toc_filter:``)."""

    model_config = ConfigDict(frozen=True)

    threshold: float = Field(default=0.5, gt=0.0, le=1.0)
    fingerprints: list[str] = Field(default_factory=list)


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    rag: RagSettings = Field(default_factory=RagSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    toc_filter: TocFilterSettings = Field(default_factory=TocFilterSettings)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys
    overlap.  Empty environment values never override.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings to take overrides from; built from the
            environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    rag_overrides = {}
    if settings.openai_model:
        rag_overrides["openai_model"] = settings.openai_model
    if settings.openai_embedding_model:
        rag_overrides["embedding_model"] = settings.openai_embedding_model

    env_overrides = {
        "rag": rag_overrides,
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_app_config(
    path: str = "config/config.yaml", settings: Settings | None = None
) -> AppConfig:
    """Load and validate configuration into :class:`AppConfig`.

    Raises:
        ConfigurationError: If any section fails validation.
    """
    raw = load_config(path, settings)
    try:
        return AppConfig.model_validate(
            {key: raw[key] for key in AppConfig.model_fields if key in raw}
        )
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid configuration in {path}: {exc}") from exc


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
