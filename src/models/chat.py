"""Conversation, message and citation models.

Citations are built per response by the citation service and persisted
only as part of the assistant :class:`Message` that carries them.  The
answer text refers to citations as ``[n]`` where ``n`` is the 1-based
position in ``Message.citations``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MessageRole(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Citation(BaseModel):
    """A reference from an answer back to the exact source text."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="Unique per response: citation-{conversation}-{ms}-{n}.")
    text: str = Field(description="Text shown to the user; the original slice when known.")
    document: str = Field(default="Unknown Document", description="Title of the source document.")
    document_id: str
    start_line: int | None = None
    end_line: int | None = None
    original_text: str | None = None


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = "New Conversation"
    user_id: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    citations: list[Citation] = Field(default_factory=list)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class AnswerResult(BaseModel):
    """Final answer text plus the citations it actually references."""

    model_config = ConfigDict(frozen=True)

    text: str
    citations: list[Citation] = Field(default_factory=list)
