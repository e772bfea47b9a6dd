"""Utility modules for Citewise.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at CitewiseError;
  each pipeline stage raises its own subclass so callers can map failures
  to document status or HTTP codes without broad ``except Exception`` blocks.
- **concurrency** -- the sequential batch runner used to bound
  embedding/vector-store load during ingestion.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **retry** -- the tenacity-backed retry policy with a final-attempt
  shrink hook.
- **text_normalizer** -- regex repair of extraction artifacts and optional
  table-of-contents stripping.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    CitewiseError,
    CompletionError,
    ConfigurationError,
    EmbeddingError,
    ExtractionError,
    FetchError,
    IngestionError,
    InvalidStatusTransitionError,
    NotFoundError,
    StorageError,
    UnsupportedFileTypeError,
    VectorSearchError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import run_in_batches

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import bind_context, clear_context, configure_logging, get_logger

# -- Retry policy ----------------------------------------------------------
from src.utils.retry import RetryPolicy

# -- Text normalization ----------------------------------------------------
from src.utils.text_normalizer import normalize, strip_toc_blocks

__all__ = [
    "CitewiseError",
    "CompletionError",
    "ConfigurationError",
    "EmbeddingError",
    "ExtractionError",
    "FetchError",
    "IngestionError",
    "InvalidStatusTransitionError",
    "NotFoundError",
    "RetryPolicy",
    "StorageError",
    "UnsupportedFileTypeError",
    "VectorSearchError",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "normalize",
    "run_in_batches",
    "strip_toc_blocks",
]
