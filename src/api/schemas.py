"""Pydantic request/response schemas for the Citewise API.

JSON field names are camelCase (``fileName``, ``fileContent``,
``totalChunks``) through an alias generator; Python code uses snake_case.
Request fields that the handlers validate themselves (to answer 400 rather
than FastAPI's 422) are declared optional.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.chat import Citation, Conversation, Message, MessageRole
from src.models.document import Document, IngestionOutcome
from src.models.rag import RetrievedChunk
from src.pipeline.ingestion_worker import IngestionJob, JobState


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class UploadDocumentRequest(CamelModel):
    """A file upload; ``fileContent`` is base64."""

    title: str | None = None
    file_name: str | None = None
    file_content: str | None = None


class TextDocumentRequest(CamelModel):
    title: str | None = None
    content: str | None = None


class DocumentResponse(CamelModel):
    """A document without its content."""

    id: str
    title: str
    metadata: dict[str, Any]
    created_at: datetime
    user_id: str | None = None

    @classmethod
    def from_document(cls, document: Document) -> DocumentResponse:
        return cls(
            id=document.id,
            title=document.title,
            metadata=document.metadata.model_dump(mode="json", by_alias=True),
            created_at=document.created_at,
            user_id=document.user_id,
        )


class DocumentDetailResponse(DocumentResponse):
    content: str = ""

    @classmethod
    def from_document(cls, document: Document) -> DocumentDetailResponse:
        base = DocumentResponse.from_document(document)
        return cls(**base.model_dump(), content=document.content)


class DocumentListResponse(CamelModel):
    documents: list[DocumentResponse]
    total: int


class IngestionJobResponse(CamelModel):
    job_id: str
    document_id: str
    state: JobState
    attempts: int
    error: str | None = None
    outcome: IngestionOutcome | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: IngestionJob) -> IngestionJobResponse:
        return cls(**job.model_dump())


class UploadResponse(CamelModel):
    """Returned once the bytes are stored; ingestion continues in the background."""

    document: DocumentResponse
    job: IngestionJobResponse


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class RetrieveRequest(CamelModel):
    query: str = Field(..., min_length=1, max_length=4000)
    top_k: int | None = Field(default=None, ge=1, le=50)
    document_id: str | None = None
    min_similarity: float | None = Field(default=None, ge=0.0, le=1.0)


class RetrievedChunkResponse(CamelModel):
    chunk_id: str
    document_id: str
    content: str
    similarity: float
    start_line: int | None = None
    end_line: int | None = None
    original_text: str | None = None
    noise_score: float = 0.0

    @classmethod
    def from_chunk(cls, chunk: RetrievedChunk) -> RetrievedChunkResponse:
        return cls(
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            content=chunk.content,
            similarity=round(chunk.similarity_score, 4),
            start_line=chunk.metadata.start_line,
            end_line=chunk.metadata.end_line,
            original_text=chunk.metadata.original_text,
            noise_score=chunk.metadata.noise_score,
        )


class RetrieveResponse(CamelModel):
    query: str
    chunks: list[RetrievedChunkResponse]


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class CreateConversationRequest(CamelModel):
    title: str | None = Field(default=None, max_length=200)


class ConversationResponse(CamelModel):
    id: str
    title: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> ConversationResponse:
        return cls(
            id=conversation.id,
            title=conversation.title,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )


class MessageResponse(CamelModel):
    id: str
    role: MessageRole
    content: str
    citations: list[Citation] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> MessageResponse:
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            citations=message.citations,
            created_at=message.created_at,
        )


class ConversationDetailResponse(ConversationResponse):
    messages: list[MessageResponse] = Field(default_factory=list)


class SendMessageRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=4000)
    document_id: str | None = None
    top_k: int | None = Field(default=None, ge=1, le=50)


class AnswerResponse(CamelModel):
    text: str
    citations: list[Citation]


class SendMessageResponse(CamelModel):
    user_message: MessageResponse
    assistant_message: MessageResponse
    answer: AnswerResponse


class SuggestedPromptsResponse(CamelModel):
    prompts: list[str]


# ---------------------------------------------------------------------------
# Health / errors
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
