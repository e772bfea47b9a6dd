"""Citewise FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, resolves the object storage backend once, and starts
the ingestion worker for the lifetime of the app.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.loader import AppConfig, load_app_config
from src.config.settings import Settings
from src.pipeline.ingestion_worker import IngestionWorker
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.storage.storage_config import build_object_storage
from src.providers.store.sqlite_document_store import SQLiteDocumentStore
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.chat_service import ChatService
from src.services.citation_service import CitationReconstructor
from src.services.document_service import DocumentService
from src.services.embedding_generator import EmbeddingGenerator
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.coordinator import IngestionCoordinator
from src.services.ingestion.extractors.registry import ExtractorRegistry
from src.services.response_generator import ResponseGenerator
from src.services.retrieval_service import RetrievalEngine
from src.services.toc_filter import TocFilter
from src.utils.errors import EmbeddingError
from src.utils.logging import configure_logging, get_logger
from src.utils.retry import RetryPolicy

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component construction
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: AppConfig) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    rag = app_config.rag
    embedding_cfg = app_config.embedding
    ingestion_cfg = app_config.ingestion

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=30.0)

    # -- Providers --
    llm = OpenAILLMProvider(settings=app_settings, model=rag.openai_model)
    embedding_provider = OpenAIEmbeddingProvider(
        settings=app_settings,
        model=rag.embedding_model,
        default_dimension=embedding_cfg.dimension,
    )
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )
    document_store = SQLiteDocumentStore(db_path=app_settings.database_path)
    storage_config, object_storage = build_object_storage(app_settings, http_client=http_client)

    # -- Pipeline pieces --
    toc_filter = TocFilter(
        threshold=app_config.toc_filter.threshold,
        fingerprints=app_config.toc_filter.fingerprints or None,
    )
    embedding_generator = EmbeddingGenerator(
        provider=embedding_provider,
        max_input_chars=embedding_cfg.max_input_chars,
        shrunk_input_chars=embedding_cfg.shrunk_input_chars,
        timeout_seconds=embedding_cfg.timeout_seconds,
        retry_policy=RetryPolicy(
            max_attempts=embedding_cfg.max_attempts,
            base_delay=embedding_cfg.base_delay_seconds,
            max_delay=embedding_cfg.max_delay_seconds,
            retry_on=(EmbeddingError,),
            name="embedding",
        ),
        allow_degraded_fallback=app_settings.allow_degraded_embeddings,
    )
    coordinator = IngestionCoordinator(
        store=document_store,
        object_storage=object_storage,
        extractors=ExtractorRegistry(),
        chunker=TextChunker(chunk_size=rag.chunk_size, chunk_overlap=rag.chunk_overlap),
        embedding_generator=embedding_generator,
        vector_store=vector_store,
        toc_filter=toc_filter,
        batch_size=ingestion_cfg.batch_size,
        batch_delay=ingestion_cfg.batch_delay_seconds,
        strip_toc=rag.strip_toc_blocks,
    )
    worker = IngestionWorker(
        coordinator=coordinator,
        max_attempts=ingestion_cfg.worker_max_attempts,
        retry_delay=ingestion_cfg.worker_retry_delay_seconds,
    )
    retrieval = RetrievalEngine(
        embedding_generator=embedding_generator,
        vector_store=vector_store,
        toc_filter=toc_filter,
        match_threshold=rag.match_threshold,
        match_count=rag.match_count,
    )

    # -- Services --
    document_service = DocumentService(
        store=document_store,
        object_storage=object_storage,
        vector_store=vector_store,
    )
    chat_service = ChatService(
        store=document_store,
        retrieval=retrieval,
        citations=CitationReconstructor(),
        generator=ResponseGenerator(
            llm=llm,
            system_prompt=rag.system_prompt,
            temperature=rag.temperature,
            max_tokens=rag.max_tokens,
        ),
        llm=llm,
    )

    provider_registry = {
        "llm": llm.is_available(),
        "embedding": embedding_provider.is_available(),
        "storage_backend": storage_config.backend,
    }
    if storage_config.fallback_reason:
        provider_registry["storage_fallback_reason"] = storage_config.fallback_reason

    return {
        "http_client": http_client,
        "llm": llm,
        "vector_store": vector_store,
        "document_store": document_store,
        "object_storage": object_storage,
        "storage_config": storage_config,
        "coordinator": coordinator,
        "ingestion_worker": worker,
        "retrieval": retrieval,
        "document_service": document_service,
        "chat_service": chat_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(components: dict[str, Any] | None):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
        """Initialise providers and services on startup, clean up on shutdown."""
        built = components
        if built is None:
            built = _build_all(settings, load_app_config(settings=settings))

        for key, value in built.items():
            setattr(application.state, key, value)

        await built["document_store"].initialize()
        worker: IngestionWorker = built["ingestion_worker"]
        await worker.start()

        _logger.info(
            "app_startup",
            version=_VERSION,
            environment=settings.app_env,
            storage_backend=built.get("provider_registry", {}).get("storage_backend"),
        )

        yield

        await worker.stop()
        http_client: httpx.AsyncClient | None = built.get("http_client")
        if http_client is not None:
            await http_client.aclose()
        _logger.info("app_shutdown")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(components: dict[str, Any] | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    ``components`` replaces :func:`_build_all` (tests pass in-memory fakes).
    """
    application = FastAPI(
        title="Citewise API",
        version=_VERSION,
        description=(
            "Upload documents, track their ingestion, and ask questions that "
            "are answered from the documents with line-level citations."
        ),
        lifespan=_make_lifespan(components),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
