"""Document lifecycle models.

A :class:`Document` is created at upload time in the ``pending`` state and
is advanced by the ingestion coordinator through a fixed sequence of
:class:`DocumentStatus` values.  Everything the pipeline knows about a
document's progress lives in its typed :class:`DocumentMetadata` record.

Metadata is never written wholesale.  Every writer goes through
:func:`merge_metadata`, which applies only the fields it is given, merges
the free-form ``extraction`` mapping key by key, and rejects status
changes that would move the document backwards.  The persistent store
calls it inside a transaction so concurrent writers cannot clobber each
other's keys.

Serialized form uses camelCase aliases (``processingStatus``,
``totalChunks``, ...) which is also what the HTTP API returns.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.utils.errors import InvalidStatusTransitionError


# ---------------------------------------------------------------------------
# DocumentStatus - the ingestion state machine.
# ---------------------------------------------------------------------------
class DocumentStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Processing states of a document.

    Documents progress strictly in this order:
        PENDING → UPLOADED → PROCESSING → CHUNKING → EMBEDDING → COMPLETE

    ERROR is a side state reachable from anywhere.  Nothing leaves ERROR;
    retrying a failed document means uploading it again.
    """

    PENDING = "pending"          # Record created, bytes not yet stored
    UPLOADED = "uploaded"        # Raw bytes in object storage
    PROCESSING = "processing"    # Fetching + extracting text
    CHUNKING = "chunking"        # Text persisted, splitting into chunks
    EMBEDDING = "embedding"      # Embedding + storing chunk batches
    COMPLETE = "complete"        # Queryable
    ERROR = "error"              # Failed; see processing_error

    def can_transition_to(self, target: DocumentStatus) -> bool:
        """Return True if moving from this status to ``target`` is allowed."""
        if target is DocumentStatus.ERROR:
            return True
        if self is DocumentStatus.ERROR:
            return False
        return _STATUS_ORDER.index(target) == _STATUS_ORDER.index(self) + 1

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETE, DocumentStatus.ERROR)


_STATUS_ORDER: list[DocumentStatus] = [
    DocumentStatus.PENDING,
    DocumentStatus.UPLOADED,
    DocumentStatus.PROCESSING,
    DocumentStatus.CHUNKING,
    DocumentStatus.EMBEDDING,
    DocumentStatus.COMPLETE,
]


# ---------------------------------------------------------------------------
# DocumentMetadata - typed replacement for an ad hoc JSON blob.
# ---------------------------------------------------------------------------
class DocumentMetadata(BaseModel):
    """Everything the pipeline records about a document besides its text."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    # --- Upload ---
    file_type: str | None = Field(default=None, description="Detected type: pdf, docx, txt, ...")
    file_name: str | None = Field(default=None, description="File name as uploaded.")
    sanitized_file_name: str | None = Field(default=None, description="Storage-safe file name.")
    size: int | None = Field(default=None, ge=0, description="Raw file size in bytes.")
    file_url: str | None = Field(default=None, description="Object storage URL of the raw file.")
    uploaded_at: datetime | None = None

    # --- Progress ---
    processing_status: DocumentStatus = DocumentStatus.PENDING
    processing_progress: int = Field(default=0, ge=0, le=100)
    processing_message: str | None = None

    # --- Chunk accounting ---
    total_chunks: int | None = Field(default=None, ge=0)
    successful_chunks: int | None = Field(default=None, ge=0)
    degraded_chunks: int = Field(
        default=0, ge=0, description="Chunks stored with a fallback vector."
    )
    unmapped_chunks: int = Field(default=0, ge=0, description="Chunks stored without line ranges.")

    # --- Outcome ---
    processing_error: str | None = None
    error_timestamp: datetime | None = None
    completed_at: datetime | None = None

    # Per-extractor details (pageCount, sheetNames, ...), merged by key.
    extraction: dict[str, Any] = Field(default_factory=dict)


def merge_metadata(current: DocumentMetadata, **changes: Any) -> DocumentMetadata:
    """Return ``current`` with ``changes`` applied.

    Only the named fields change; ``extraction`` is merged key by key.
    A ``processing_status`` change must be a legal transition.

    Raises
    ------
    ValueError
        If a change names an unknown field.
    InvalidStatusTransitionError
        If the status change would skip a state or move backwards.
    """
    unknown = set(changes) - set(DocumentMetadata.model_fields)
    if unknown:
        raise ValueError(f"Unknown metadata fields: {sorted(unknown)}")

    if "processing_status" in changes:
        target = DocumentStatus(changes["processing_status"])
        source = current.processing_status
        if target is not source and not source.can_transition_to(target):
            raise InvalidStatusTransitionError(
                message=f"Cannot move document from '{source.value}' to '{target.value}'"
            )
        changes["processing_status"] = target

    if "extraction" in changes:
        changes["extraction"] = {**current.extraction, **(changes["extraction"] or {})}

    merged = {**current.model_dump(), **changes}
    return DocumentMetadata.model_validate(merged)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """An uploaded document and its pipeline state."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str = Field(
        default="", description="Normalized extracted text; empty until extracted."
    )
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    user_id: str | None = None

    @property
    def status(self) -> DocumentStatus:
        return self.metadata.processing_status


class DocumentStatusView(BaseModel):
    """Pollable snapshot of a document's progress."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    status: DocumentStatus
    progress: int
    total_chunks: int | None = None
    successful_chunks: int | None = None
    message: str | None = None
    error: str | None = None

    @classmethod
    def from_metadata(cls, metadata: DocumentMetadata) -> DocumentStatusView:
        return cls(
            status=metadata.processing_status,
            progress=metadata.processing_progress,
            total_chunks=metadata.total_chunks,
            successful_chunks=metadata.successful_chunks,
            message=metadata.processing_message,
            error=metadata.processing_error,
        )


class IngestionOutcome(BaseModel):
    """Summary of one ingestion run, returned by the coordinator."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    status: DocumentStatus = Field(description="Document status when the run ended.")
    skipped: bool = Field(default=False, description="True when the run did nothing.")
    reason: str | None = Field(default=None, description="Why the run was skipped or failed.")
    total_chunks: int = Field(default=0, ge=0)
    successful_chunks: int = Field(default=0, ge=0)
    degraded_chunks: int = Field(default=0, ge=0)
    unmapped_chunks: int = Field(default=0, ge=0)
    ingestion_time: float = Field(
        default=0.0, ge=0.0, description="Wall-clock time in seconds for the run."
    )
