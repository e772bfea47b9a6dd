"""Abstract base class for the relational store.

Persists documents, chunks, conversations and messages.  Two invariants
belong to the store:

* deleting a document deletes its chunks, and deleting a conversation
  deletes its messages (cascade);
* :meth:`IDocumentStore.update_document_metadata` is an atomic
  read-merge-write through :func:`~src.models.document.merge_metadata`,
  so concurrent writers never overwrite each other's keys.

Lookups of missing ids raise :class:`~src.utils.errors.NotFoundError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.chat import Conversation, Message
from src.models.document import Document, DocumentMetadata
from src.models.rag import DocumentChunk


# Concrete implementation: SQLiteDocumentStore (src/providers/store/)
class IDocumentStore(ABC):
    """Contract for document, chunk and conversation persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if they do not exist."""

    # -- Documents ---------------------------------------------------------

    @abstractmethod
    async def create_document(self, document: Document) -> Document:
        """Insert a new document."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document:
        """Return a document or raise NotFoundError."""

    @abstractmethod
    async def list_documents(self, limit: int | None = None) -> list[Document]:
        """Return documents, newest first."""

    @abstractmethod
    async def update_document_content(self, document_id: str, content: str) -> None:
        """Replace the document's extracted text."""

    @abstractmethod
    async def update_document_metadata(self, document_id: str, **changes: Any) -> DocumentMetadata:
        """Atomically merge ``changes`` into the stored metadata and return the result.

        Raises
        ------
        NotFoundError
            If the document does not exist.
        InvalidStatusTransitionError
            If ``processing_status`` would move illegally; nothing is written.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        """Delete a document and, by cascade, its chunks."""

    # -- Chunks ------------------------------------------------------------

    @abstractmethod
    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Insert chunks; returns how many were written."""

    @abstractmethod
    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return a document's chunks in order."""

    # -- Conversations -----------------------------------------------------

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        """Insert a new conversation."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Return a conversation or raise NotFoundError."""

    @abstractmethod
    async def list_conversations(self) -> list[Conversation]:
        """Return conversations, most recently updated first."""

    @abstractmethod
    async def update_conversation(self, conversation_id: str, title: str | None = None) -> None:
        """Bump ``updated_at`` and optionally rename."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation and, by cascade, its messages."""

    @abstractmethod
    async def add_message(self, message: Message) -> Message:
        """Append a message to its conversation."""

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> list[Message]:
        """Return a conversation's messages, oldest first."""
