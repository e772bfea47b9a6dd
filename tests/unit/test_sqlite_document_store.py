"""Unit tests for SQLiteDocumentStore.

Each test runs against a fresh database in pytest's ``tmp_path`` via the
``document_store`` fixture from conftest.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.models.chat import Citation, Conversation, Message, MessageRole
from src.models.document import Document, DocumentMetadata, DocumentStatus
from src.models.rag import ChunkMetadata, DocumentChunk
from src.providers.store.sqlite_document_store import SQLiteDocumentStore
from src.utils.errors import InvalidStatusTransitionError, NotFoundError


def _document(doc_id: str = "doc-1", **kwargs) -> Document:
    return Document(id=doc_id, title=kwargs.pop("title", "Report"), **kwargs)


def _chunk(index: int, doc_id: str = "doc-1") -> DocumentChunk:
    return DocumentChunk(
        chunk_id=f"{doc_id}-chunk-{index}",
        document_id=doc_id,
        content=f"chunk {index}",
        chunk_index=index,
        metadata=ChunkMetadata(start_line=index + 1, end_line=index + 2, original_text="x"),
    )


# ======================================================================
# Documents
# ======================================================================


class TestDocuments:
    @pytest.mark.asyncio
    async def test_create_and_get_round_trip(self, document_store: SQLiteDocumentStore) -> None:
        metadata = DocumentMetadata(file_name="report.pdf", extraction={"pageCount": 2})
        await document_store.create_document(_document(metadata=metadata, user_id="u1"))

        loaded = await document_store.get_document("doc-1")

        assert loaded.title == "Report"
        assert loaded.user_id == "u1"
        assert loaded.metadata.file_name == "report.pdf"
        assert loaded.metadata.extraction == {"pageCount": 2}
        assert loaded.status is DocumentStatus.PENDING

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, document_store: SQLiteDocumentStore) -> None:
        with pytest.raises(NotFoundError):
            await document_store.get_document("missing")

    @pytest.mark.asyncio
    async def test_list_newest_first_with_limit(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)  # noqa: UP017
        for i in range(3):
            await document_store.create_document(
                _document(f"doc-{i}", created_at=base + timedelta(minutes=i))
            )

        listed = await document_store.list_documents()
        limited = await document_store.list_documents(limit=2)

        assert [d.id for d in listed] == ["doc-2", "doc-1", "doc-0"]
        assert [d.id for d in limited] == ["doc-2", "doc-1"]

    @pytest.mark.asyncio
    async def test_update_content(self, document_store: SQLiteDocumentStore) -> None:
        await document_store.create_document(_document())
        await document_store.update_document_content("doc-1", "normalized text")

        assert (await document_store.get_document("doc-1")).content == "normalized text"

    @pytest.mark.asyncio
    async def test_update_content_missing_raises(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        with pytest.raises(NotFoundError):
            await document_store.update_document_content("missing", "text")

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, document_store: SQLiteDocumentStore) -> None:
        with pytest.raises(NotFoundError):
            await document_store.delete_document("missing")


# ======================================================================
# Metadata merges
# ======================================================================


class TestMetadataUpdates:
    @pytest.mark.asyncio
    async def test_merge_keeps_other_fields(self, document_store: SQLiteDocumentStore) -> None:
        metadata = DocumentMetadata(file_name="a.txt", extraction={"lineCount": 4})
        await document_store.create_document(_document(metadata=metadata))

        await document_store.update_document_metadata(
            "doc-1", processing_status=DocumentStatus.UPLOADED, processing_progress=10
        )
        merged = await document_store.update_document_metadata(
            "doc-1", extraction={"encoding": "utf-8"}
        )

        assert merged.file_name == "a.txt"
        assert merged.processing_status is DocumentStatus.UPLOADED
        assert merged.processing_progress == 10
        assert merged.extraction == {"lineCount": 4, "encoding": "utf-8"}
        assert (await document_store.get_document("doc-1")).metadata == merged

    @pytest.mark.asyncio
    async def test_illegal_transition_leaves_row_unchanged(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        await document_store.create_document(_document())

        with pytest.raises(InvalidStatusTransitionError):
            await document_store.update_document_metadata(
                "doc-1", processing_status=DocumentStatus.COMPLETE
            )

        assert (await document_store.get_document("doc-1")).status is DocumentStatus.PENDING

    @pytest.mark.asyncio
    async def test_missing_document_raises(self, document_store: SQLiteDocumentStore) -> None:
        with pytest.raises(NotFoundError):
            await document_store.update_document_metadata("missing", processing_progress=5)


# ======================================================================
# Chunks
# ======================================================================


class TestChunks:
    @pytest.mark.asyncio
    async def test_chunks_listed_in_order(self, document_store: SQLiteDocumentStore) -> None:
        await document_store.create_document(_document())
        assert await document_store.add_chunks([_chunk(2), _chunk(0), _chunk(1)]) == 3

        chunks = await document_store.list_chunks("doc-1")

        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert chunks[0].metadata.start_line == 1
        assert chunks[0].metadata.original_text == "x"

    @pytest.mark.asyncio
    async def test_empty_batch(self, document_store: SQLiteDocumentStore) -> None:
        assert await document_store.add_chunks([]) == 0

    @pytest.mark.asyncio
    async def test_chunks_deleted_with_document(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        await document_store.create_document(_document())
        await document_store.add_chunks([_chunk(0), _chunk(1)])

        await document_store.delete_document("doc-1")

        assert await document_store.list_chunks("doc-1") == []


# ======================================================================
# Conversations and messages
# ======================================================================


class TestConversations:
    @pytest.mark.asyncio
    async def test_conversation_round_trip(self, document_store: SQLiteDocumentStore) -> None:
        await document_store.create_conversation(Conversation(id="c1", user_id="u1"))

        loaded = await document_store.get_conversation("c1")

        assert loaded.title == "New Conversation"
        assert loaded.user_id == "u1"

    @pytest.mark.asyncio
    async def test_rename_updates_title(self, document_store: SQLiteDocumentStore) -> None:
        await document_store.create_conversation(Conversation(id="c1"))
        await document_store.update_conversation("c1", title="Quarterly figures")

        assert (await document_store.get_conversation("c1")).title == "Quarterly figures"

    @pytest.mark.asyncio
    async def test_touch_moves_conversation_to_front(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        old = datetime(2024, 1, 1, tzinfo=timezone.utc)  # noqa: UP017
        await document_store.create_conversation(
            Conversation(id="c1", created_at=old, updated_at=old)
        )
        await document_store.create_conversation(
            Conversation(id="c2", created_at=old, updated_at=old + timedelta(days=1))
        )

        await document_store.update_conversation("c1")

        assert [c.id for c in await document_store.list_conversations()] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, document_store: SQLiteDocumentStore) -> None:
        with pytest.raises(NotFoundError):
            await document_store.update_conversation("missing", title="x")

    @pytest.mark.asyncio
    async def test_messages_keep_citations_and_order(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        await document_store.create_conversation(Conversation(id="c1"))
        citation = Citation(
            id="citation-c1-1-1",
            text="quoted",
            document="Report",
            document_id="doc-1",
            start_line=10,
            end_line=12,
        )
        await document_store.add_message(
            Message(id="m1", conversation_id="c1", role=MessageRole.USER, content="question")
        )
        await document_store.add_message(
            Message(
                id="m2",
                conversation_id="c1",
                role=MessageRole.ASSISTANT,
                content="answer [1]",
                citations=[citation],
            )
        )

        messages = await document_store.list_messages("c1")

        assert [m.id for m in messages] == ["m1", "m2"]
        assert messages[0].citations == []
        assert messages[1].citations == [citation]

    @pytest.mark.asyncio
    async def test_messages_deleted_with_conversation(
        self, document_store: SQLiteDocumentStore
    ) -> None:
        await document_store.create_conversation(Conversation(id="c1"))
        await document_store.add_message(
            Message(id="m1", conversation_id="c1", role=MessageRole.USER, content="hi")
        )

        await document_store.delete_conversation("c1")

        assert await document_store.list_messages("c1") == []
        with pytest.raises(NotFoundError):
            await document_store.get_conversation("c1")
