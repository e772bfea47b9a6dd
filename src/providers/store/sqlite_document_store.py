"""SQLite-backed document store.

Persists documents, chunks, conversations and messages to a local SQLite
database at ``data/citewise.db``.  Uses ``aiosqlite`` for async I/O with
one short-lived connection per operation.

Foreign keys are enabled on every connection so ``ON DELETE CASCADE``
removes chunks with their document and messages with their conversation.
Metadata updates run inside ``BEGIN IMMEDIATE`` so the read-merge-write is
atomic with respect to other writers.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite
import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.chat import Citation, Conversation, Message, MessageRole
from src.models.document import Document, DocumentMetadata, merge_metadata
from src.models.rag import ChunkMetadata, DocumentChunk
from src.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/citewise.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    content     TEXT NOT NULL DEFAULT '',
    metadata    TEXT NOT NULL DEFAULT '{}',
    user_id     TEXT,
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id           TEXT PRIMARY KEY,
    document_id  TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index  INTEGER NOT NULL,
    content      TEXT NOT NULL,
    metadata     TEXT NOT NULL DEFAULT '{}',
    created_at   TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS conversations (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    user_id     TEXT,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS messages (
    id               TEXT PRIMARY KEY,
    conversation_id  TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role             TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
    content          TEXT NOT NULL,
    citations        TEXT NOT NULL DEFAULT '[]',
    created_at       TEXT NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation "
    "ON messages(conversation_id, created_at);",
]


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SQLiteDocumentStore(IDocumentStore):
    """SQLite persistence for documents, chunks and conversations."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, document: Document) -> Document:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO documents (id, title, content, metadata, user_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    document.id,
                    document.title,
                    document.content,
                    document.metadata.model_dump_json(by_alias=True),
                    document.user_id,
                    document.created_at.isoformat(),
                ),
            )
            await db.commit()
        logger.info("document_created", document_id=document.id, title=document.title)
        return document

    async def get_document(self, document_id: str) -> Document:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(message=f"Document not found: {document_id}")
        return self._row_to_document(row)

    async def list_documents(self, limit: int | None = None) -> list[Document]:
        sql = "SELECT * FROM documents ORDER BY created_at DESC"
        params: tuple[Any, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [self._row_to_document(r) for r in rows]

    async def update_document_content(self, document_id: str, content: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE documents SET content = ? WHERE id = ?", (content, document_id)
            )
            await db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(message=f"Document not found: {document_id}")

    async def update_document_metadata(self, document_id: str, **changes: Any) -> DocumentMetadata:
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "SELECT metadata FROM documents WHERE id = ?", (document_id,)
                )
                row = await cursor.fetchone()
                if row is None:
                    raise NotFoundError(message=f"Document not found: {document_id}")
                current = DocumentMetadata.model_validate_json(row["metadata"])
                merged = merge_metadata(current, **changes)
                await db.execute(
                    "UPDATE documents SET metadata = ? WHERE id = ?",
                    (merged.model_dump_json(by_alias=True), document_id),
                )
                await db.commit()
            except BaseException:
                await db.rollback()
                raise
        return merged

    async def delete_document(self, document_id: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(message=f"Document not found: {document_id}")
        logger.info("document_deleted", document_id=document_id)

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0
        async with self._connect() as db:
            await db.executemany(
                "INSERT OR REPLACE INTO chunks "
                "(id, document_id, chunk_index, content, metadata, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        c.chunk_id,
                        c.document_id,
                        c.chunk_index,
                        c.content,
                        c.metadata.model_dump_json(by_alias=True),
                        c.created_at.isoformat(),
                    )
                    for c in chunks
                ],
            )
            await db.commit()
        return len(chunks)

    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [
            DocumentChunk(
                chunk_id=r["id"],
                document_id=r["document_id"],
                content=r["content"],
                chunk_index=r["chunk_index"],
                metadata=ChunkMetadata.model_validate_json(r["metadata"]),
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Conversations and messages
    # ------------------------------------------------------------------

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO conversations (id, title, user_id, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    conversation.id,
                    conversation.title,
                    conversation.user_id,
                    conversation.created_at.isoformat(),
                    conversation.updated_at.isoformat(),
                ),
            )
            await db.commit()
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            )
            row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(message=f"Conversation not found: {conversation_id}")
        return self._row_to_conversation(row)

    async def list_conversations(self) -> list[Conversation]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM conversations ORDER BY updated_at DESC")
            rows = await cursor.fetchall()
        return [self._row_to_conversation(r) for r in rows]

    async def update_conversation(self, conversation_id: str, title: str | None = None) -> None:
        async with self._connect() as db:
            if title is None:
                cursor = await db.execute(
                    "UPDATE conversations SET updated_at = ? WHERE id = ?",
                    (_now().isoformat(), conversation_id),
                )
            else:
                cursor = await db.execute(
                    "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
                    (title, _now().isoformat(), conversation_id),
                )
            await db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(message=f"Conversation not found: {conversation_id}")

    async def delete_conversation(self, conversation_id: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM conversations WHERE id = ?", (conversation_id,)
            )
            await db.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(message=f"Conversation not found: {conversation_id}")

    async def add_message(self, message: Message) -> Message:
        citations = json.dumps(
            [c.model_dump(mode="json", by_alias=True) for c in message.citations]
        )
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO messages (id, conversation_id, role, content, citations, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    message.id,
                    message.conversation_id,
                    message.role.value,
                    message.content,
                    citations,
                    message.created_at.isoformat(),
                ),
            )
            await db.commit()
        return message

    async def list_messages(self, conversation_id: str) -> list[Message]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at, rowid",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
        return [
            Message(
                id=r["id"],
                conversation_id=r["conversation_id"],
                role=MessageRole(r["role"]),
                content=r["content"],
                citations=[Citation.model_validate(c) for c in json.loads(r["citations"])],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    def get_provider_name(self) -> str:
        return "sqlite_documents"

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        return Document(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            metadata=DocumentMetadata.model_validate_json(row["metadata"]),
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            title=row["title"],
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
