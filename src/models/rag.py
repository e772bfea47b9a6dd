"""Chunk and retrieval models for the Citewise knowledge base.

A document's normalized text is split into :class:`DocumentChunk` objects
by ``src/services/ingestion/chunker.py``.  Each chunk remembers where it
came from in the *original* (pre-normalization) text through
:class:`ChunkMetadata`, so an answer can quote the source verbatim and
point at a line range.

Retrieval returns :class:`RetrievedChunk` objects: the stored chunk fields
plus the similarity score reported by the vector store.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChunkMetadata(BaseModel):
    """Provenance and quality flags for one chunk.

    ``start_line``/``end_line`` are 1-based and inclusive.  Both are None
    when the line mapper could not locate the chunk in the original text;
    ``original_text`` is then None as well and citations fall back to the
    chunk content.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    start_line: int | None = Field(default=None, ge=1)
    end_line: int | None = Field(default=None, ge=1)
    original_text: str | None = Field(
        default=None, description="Verbatim slice of the original text this chunk covers."
    )
    degraded: bool = Field(
        default=False,
        description="True when the stored vector is a fallback, not a real embedding.",
    )
    noise_score: float = Field(
        default=0.0, ge=0.0, le=1.0, description="TOC-filter confidence recorded at ingestion."
    )

    @property
    def has_line_range(self) -> bool:
        return self.start_line is not None and self.end_line is not None


class DocumentChunk(BaseModel):
    """A chunk of a document's text, ready for embedding and storage."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str = Field(description="Identifier of the owning document.")
    content: str = Field(description="The chunk's normalized text.")
    chunk_index: int = Field(default=0, ge=0, description="Position within the document.")
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class RetrievedChunk(BaseModel):
    """A chunk returned from a similarity search."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    content: str
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    similarity_score: float = Field(
        description="Similarity between query and chunk (1.0 = identical)."
    )
