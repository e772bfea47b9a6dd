"""Custom exception hierarchy for Citewise.

All application exceptions inherit from :class:`CitewiseError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "local-storage") caused the
failure.

The hierarchy is organized by pipeline stage:

    CitewiseError  (base -- catch-all for any citewise error)
    +-- FetchError                   (object storage / network read)
    +-- StorageError                 (object storage write)
    +-- ExtractionError              (per-format parse failure)
    +-- UnsupportedFileTypeError     (upload of an unknown extension)
    +-- EmbeddingError               (embedding service, retries exhausted)
    +-- VectorSearchError            (vector store query / write)
    +-- CompletionError              (chat-completion service)
    +-- NotFoundError                (document / conversation lookup miss)
    +-- ConfigurationError           (startup / invalid config)
    +-- IngestionError               (coordinator-level failure)
        +-- InvalidStatusTransitionError

Ingestion-time errors are caught by the coordinator and recorded on the
document's metadata; retrieval-time and answer-time errors propagate to the
HTTP layer, which maps them to status codes.
"""


class CitewiseError(Exception):
    """Base exception for all Citewise errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Object storage
# ---------------------------------------------------------------------------

class FetchError(CitewiseError):
    """Raised when raw file bytes cannot be read back from object storage."""

    def __init__(
        self,
        message: str = "Failed to fetch file",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(CitewiseError):
    """Raised when raw file bytes cannot be written to object storage."""

    def __init__(
        self,
        message: str = "Failed to store file",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ExtractionError(CitewiseError):
    """Raised when a per-format extractor cannot parse the file."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFileTypeError(CitewiseError):
    """Raised at upload time when the file extension has no extractor."""

    def __init__(
        self,
        message: str = "Unsupported file extension",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding, search and completion
# ---------------------------------------------------------------------------

class EmbeddingError(CitewiseError):
    """Raised when an embedding cannot be produced after all retries."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorSearchError(CitewiseError):
    """Raised when the vector store rejects a query or a write."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CompletionError(CitewiseError):
    """Raised when the chat-completion service fails or times out."""

    def __init__(
        self,
        message: str = "Failed to generate a response",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Lookup, configuration and pipeline state
# ---------------------------------------------------------------------------

class NotFoundError(CitewiseError):
    """Raised when a document, chunk or conversation does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(CitewiseError):
    """Raised when configuration is missing or violates an invariant."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(CitewiseError):
    """Raised when the ingestion coordinator cannot advance a document."""

    def __init__(
        self,
        message: str = "Document ingestion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidStatusTransitionError(IngestionError):
    """Raised when a metadata update would move a document backwards."""

    def __init__(
        self,
        message: str = "Invalid processing status transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
