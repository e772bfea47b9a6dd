"""End-to-end ingestion: upload, extract, chunk, embed, retrieve and cite.

Runs the real services over a temporary SQLite database with in-memory
object storage and vector store and deterministic bag-of-words embeddings.
"""

from __future__ import annotations

import pytest

from src.models.document import DocumentStatus
from src.providers.store.sqlite_document_store import SQLiteDocumentStore
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
from tests.conftest import MockObjectStorage, MockVectorStore

REVIEW = (
    "Quarterly Energy Review\n"
    "\n"
    "Solar output rose sharply in spring.\n"
    "Panels on the north campus were cleaned.\n"
    "\n"
    "Wind generation stayed flat all year.\n"
    "Turbine maintenance ran over budget.\n"
)


@pytest.fixture
def pipeline(
    document_store: SQLiteDocumentStore,
    embedding_generator: EmbeddingGenerator,
    mock_llm_provider,
) -> dict:
    object_storage = MockObjectStorage()
    vector_store = MockVectorStore()
    toc_filter = TocFilter()
    coordinator = IngestionCoordinator(
        store=document_store,
        object_storage=object_storage,
        extractors=ExtractorRegistry(),
        chunker=TextChunker(chunk_size=90, chunk_overlap=0),
        embedding_generator=embedding_generator,
        vector_store=vector_store,
        toc_filter=toc_filter,
        batch_size=2,
        batch_delay=0,
    )
    retrieval = RetrievalEngine(
        embedding_generator=embedding_generator,
        vector_store=vector_store,
        toc_filter=toc_filter,
        match_threshold=0.0,
    )
    return {
        "store": document_store,
        "vector_store": vector_store,
        "coordinator": coordinator,
        "retrieval": retrieval,
        "documents": DocumentService(document_store, object_storage, vector_store),
        "chat": ChatService(
            store=document_store,
            retrieval=retrieval,
            citations=CitationReconstructor(),
            generator=ResponseGenerator(mock_llm_provider, "Answer from the excerpts."),
            llm=mock_llm_provider,
        ),
    }


class TestIngestionPipeline:
    @pytest.mark.asyncio
    async def test_uploaded_file_becomes_queryable(self, pipeline: dict) -> None:
        document = await pipeline["documents"].upload(
            "Energy Review", "energy review.txt", REVIEW.encode("utf-8")
        )

        outcome = await pipeline["coordinator"].ingest(document.id)

        assert outcome.status is DocumentStatus.COMPLETE
        assert outcome.total_chunks == 3
        assert outcome.successful_chunks == 3
        stored = await pipeline["store"].get_document(document.id)
        assert stored.metadata.processing_status is DocumentStatus.COMPLETE
        assert stored.metadata.processing_progress == 100
        assert stored.content.startswith("Quarterly Energy Review")
        assert len(await pipeline["store"].list_chunks(document.id)) == 3
        assert await pipeline["vector_store"].count() == 3

    @pytest.mark.asyncio
    async def test_answer_cites_original_lines(self, pipeline: dict, mock_llm_provider) -> None:
        document = await pipeline["documents"].upload(
            "Energy Review", "review.txt", REVIEW.encode("utf-8")
        )
        await pipeline["coordinator"].ingest(document.id)
        mock_llm_provider.complete.return_value = "Wind was flat CITATION_BADGE_0."

        answer = await pipeline["chat"].answer(
            "wind generation turbine maintenance", "conv-1", [], top_k=1
        )

        assert answer.text == "Wind was flat [1]."
        (citation,) = answer.citations
        assert citation.document == "Energy Review"
        assert citation.document_id == document.id
        assert (citation.start_line, citation.end_line) == (6, 7)
        assert citation.text == (
            "Wind generation stayed flat all year.\nTurbine maintenance ran over budget."
        )

    @pytest.mark.asyncio
    async def test_second_run_is_skipped(self, pipeline: dict) -> None:
        document = await pipeline["documents"].create_text_document("Memo", REVIEW)
        await pipeline["coordinator"].ingest(document.id)

        again = await pipeline["coordinator"].ingest(document.id)

        assert again.skipped is True
        assert await pipeline["vector_store"].count() == 3

    @pytest.mark.asyncio
    async def test_deleted_document_leaves_nothing_to_retrieve(self, pipeline: dict) -> None:
        document = await pipeline["documents"].create_text_document("Memo", REVIEW)
        await pipeline["coordinator"].ingest(document.id)

        await pipeline["documents"].delete_document(document.id)

        assert await pipeline["retrieval"].retrieve("solar output spring") == []
