"""Citewise domain models - re-exports all public model classes.

The models are organized by concern:
    - document.py - Document, its typed metadata and the status state machine
    - rag.py      - Chunks and retrieval results
    - chat.py     - Conversations, messages, citations and answers

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

from src.models.chat import AnswerResult, Citation, Conversation, Message, MessageRole
from src.models.document import (
    Document,
    DocumentMetadata,
    DocumentStatus,
    DocumentStatusView,
    IngestionOutcome,
    merge_metadata,
)
from src.models.rag import ChunkMetadata, DocumentChunk, RetrievedChunk

__all__ = [
    "AnswerResult",
    "ChunkMetadata",
    "Citation",
    "Conversation",
    "Document",
    "DocumentChunk",
    "DocumentMetadata",
    "DocumentStatus",
    "DocumentStatusView",
    "IngestionOutcome",
    "Message",
    "MessageRole",
    "RetrievedChunk",
    "merge_metadata",
]
