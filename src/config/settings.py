"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from two sources (in priority order):
#
#   1. **Environment variables** - e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field `openai_api_key` maps to env var `OPENAI_API_KEY`.  Defaults are
# used when neither source sets a field.
#
# These are *deployment* settings (keys, paths, hosts).  Retrieval and
# chunking knobs live in config/config.yaml and are validated by
# RagSettings in src/config/loader.py.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Citewise deployment settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === OpenAI (completion + embeddings) ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_model: str = ""  # Overrides rag.openai_model from config.yaml
    openai_embedding_model: str = ""  # Overrides rag.embedding_model
    completion_timeout_seconds: float = 25.0

    # === Object storage ===
    # "local" keeps raw uploads on disk; "http" talks to a bucket-style
    # HTTP object store.  Resolved once at startup into a StorageConfig.
    storage_backend: str = "local"
    storage_local_root: str = "data/uploads"
    storage_http_base_url: str = ""
    storage_http_token: str = ""
    storage_bucket: str = "documents"

    # === Persistence ===
    database_path: str = "data/citewise.db"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "citewise_chunks"

    # === Embedding failure policy ===
    # When true, a chunk whose embedding fails after all retries is stored
    # with a random vector and flagged degraded instead of being skipped.
    allow_degraded_embeddings: bool = False

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "*"  # comma-separated

    def get_cors_origins(self) -> list[str]:
        """Return the configured CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
