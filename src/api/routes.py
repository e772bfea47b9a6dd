"""FastAPI API routes for Citewise.

Documents are uploaded, handed to the ingestion worker and polled; the
library is queried directly (``/retrieve``) or through conversations whose
messages are answered with citations.  Service dependencies are resolved
from ``app.state`` via FastAPI's ``Depends`` using the ``Annotated``
pattern.  Application errors raised by services are turned into JSON
responses by ``ErrorHandlingMiddleware``; handlers only raise
``HTTPException`` for request validation.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.api.schemas import (
    AnswerResponse,
    ConversationDetailResponse,
    ConversationResponse,
    CreateConversationRequest,
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    IngestionJobResponse,
    MessageResponse,
    RetrievedChunkResponse,
    RetrieveRequest,
    RetrieveResponse,
    SendMessageRequest,
    SendMessageResponse,
    SuggestedPromptsResponse,
    TextDocumentRequest,
    UploadDocumentRequest,
    UploadResponse,
)
from src.models.document import DocumentStatusView
from src.pipeline.ingestion_worker import IngestionWorker
from src.services.chat_service import ChatService
from src.services.document_service import DocumentService
from src.services.retrieval_service import RetrievalEngine
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"
_MAX_UPLOAD_BYTES = 25 * 1024 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _get_retrieval(request: Request) -> RetrievalEngine:
    return request.app.state.retrieval


def _get_worker(request: Request) -> IngestionWorker:
    return request.app.state.ingestion_worker


DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
ChatServiceDep = Annotated[ChatService, Depends(_get_chat_service)]
RetrievalDep = Annotated[RetrievalEngine, Depends(_get_retrieval)]
WorkerDep = Annotated[IngestionWorker, Depends(_get_worker)]


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise HTTPException(status_code=400, detail=f"Missing required field: {field}")
    return value


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=UploadResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
    },
    summary="Upload a document and queue it for ingestion",
)
async def upload_document(
    body: UploadDocumentRequest,
    documents: DocumentServiceDep,
    worker: WorkerDep,
) -> UploadResponse:
    title = _require(body.title, "title")
    file_name = _require(body.file_name, "fileName")
    encoded = _require(body.file_content, "fileContent")

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="fileContent is not valid base64") from exc
    if len(data) > _MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    document = await documents.upload(title=title, file_name=file_name, data=data)
    job = worker.enqueue(document.id)
    return UploadResponse(
        document=DocumentResponse.from_document(document),
        job=IngestionJobResponse.from_job(job),
    )


@router.post(
    "/documents/text",
    response_model=UploadResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    summary="Create a document from raw text and queue it for ingestion",
)
async def create_text_document(
    body: TextDocumentRequest,
    documents: DocumentServiceDep,
    worker: WorkerDep,
) -> UploadResponse:
    title = _require(body.title, "title")
    content = _require(body.content, "content")

    document = await documents.create_text_document(title=title, content=content)
    job = worker.enqueue(document.id)
    return UploadResponse(
        document=DocumentResponse.from_document(document),
        job=IngestionJobResponse.from_job(job),
    )


@router.get("/documents", response_model=DocumentListResponse, summary="List documents")
async def list_documents(
    documents: DocumentServiceDep,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> DocumentListResponse:
    items = await documents.list_documents(limit=limit)
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d) for d in items],
        total=len(items),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a document with its extracted content",
)
async def get_document(document_id: str, documents: DocumentServiceDep) -> DocumentDetailResponse:
    return DocumentDetailResponse.from_document(await documents.get_document(document_id))


@router.delete(
    "/documents/{document_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document with its chunks and stored file",
)
async def delete_document(document_id: str, documents: DocumentServiceDep) -> None:
    await documents.delete_document(document_id)


@router.get(
    "/documents/{document_id}/status",
    response_model=DocumentStatusView,
    responses={404: {"model": ErrorResponse}},
    summary="Poll ingestion progress",
)
async def get_document_status(
    document_id: str, documents: DocumentServiceDep
) -> DocumentStatusView:
    return await documents.get_status(document_id)


@router.post(
    "/documents/{document_id}/process",
    response_model=IngestionJobResponse,
    status_code=202,
    responses={404: {"model": ErrorResponse}},
    summary="Queue a stored document for ingestion",
)
async def process_document(
    document_id: str,
    documents: DocumentServiceDep,
    worker: WorkerDep,
) -> IngestionJobResponse:
    await documents.get_document(document_id)
    return IngestionJobResponse.from_job(worker.enqueue(document_id))


@router.get(
    "/ingestion/jobs/{job_id}",
    response_model=IngestionJobResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get the state of an ingestion job",
)
async def get_ingestion_job(job_id: str, worker: WorkerDep) -> IngestionJobResponse:
    return IngestionJobResponse.from_job(worker.get_job(job_id))


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@router.post("/retrieve", response_model=RetrieveResponse, summary="Rank chunks for a query")
async def retrieve(body: RetrieveRequest, retrieval: RetrievalDep) -> RetrieveResponse:
    chunks = await retrieval.retrieve(
        body.query,
        top_k=body.top_k,
        document_id=body.document_id,
        min_similarity=body.min_similarity,
    )
    return RetrieveResponse(
        query=body.query,
        chunks=[RetrievedChunkResponse.from_chunk(c) for c in chunks],
    )


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


@router.post(
    "/conversations",
    response_model=ConversationResponse,
    status_code=201,
    summary="Start a conversation",
)
async def create_conversation(
    body: CreateConversationRequest, chat: ChatServiceDep
) -> ConversationResponse:
    conversation = await chat.create_conversation(title=body.title)
    return ConversationResponse.from_conversation(conversation)


@router.get(
    "/conversations",
    response_model=list[ConversationResponse],
    summary="List conversations, most recent first",
)
async def list_conversations(chat: ChatServiceDep) -> list[ConversationResponse]:
    return [ConversationResponse.from_conversation(c) for c in await chat.list_conversations()]


@router.get(
    "/conversations/{conversation_id}",
    response_model=ConversationDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a conversation with its messages",
)
async def get_conversation(
    conversation_id: str, chat: ChatServiceDep
) -> ConversationDetailResponse:
    conversation, messages = await chat.get_conversation(conversation_id)
    base = ConversationResponse.from_conversation(conversation)
    return ConversationDetailResponse(
        **base.model_dump(),
        messages=[MessageResponse.from_message(m) for m in messages],
    )


@router.delete(
    "/conversations/{conversation_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a conversation and its messages",
)
async def delete_conversation(conversation_id: str, chat: ChatServiceDep) -> None:
    await chat.delete_conversation(conversation_id)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=SendMessageResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Ask a question in a conversation",
)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    chat: ChatServiceDep,
) -> SendMessageResponse:
    user_message, assistant_message, answer = await chat.send_message(
        conversation_id,
        body.content,
        document_id=body.document_id,
        top_k=body.top_k,
    )
    return SendMessageResponse(
        user_message=MessageResponse.from_message(user_message),
        assistant_message=MessageResponse.from_message(assistant_message),
        answer=AnswerResponse(text=answer.text, citations=answer.citations),
    )


@router.get(
    "/suggested-prompts",
    response_model=SuggestedPromptsResponse,
    summary="Questions to ask about the current library",
)
async def suggested_prompts(chat: ChatServiceDep) -> SuggestedPromptsResponse:
    return SuggestedPromptsResponse(prompts=await chat.suggested_prompts())


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))

    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        try:
            providers["vector_chunks"] = await vector_store.count()
            providers["vector_store"] = True
        except Exception as exc:
            _logger.warning("health_vector_store_failed", error=str(exc))
            providers["vector_store"] = False

    worker = getattr(request.app.state, "ingestion_worker", None)
    providers["ingestion_worker"] = bool(worker is not None and worker.running)

    critical_ok = providers.get("llm", False) and providers.get("embedding", False)
    if critical_ok and providers.get("vector_store", False):
        status = "healthy"
    elif providers.get("vector_store", False):
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=_VERSION, providers=providers)
