"""Conversations and the retrieval-augmented answer flow.

Answer flow for one user message:
  1. the user message is stored
  2. on the first message of a conversation, a short title is generated
  3. RETRIEVE    -- non-noise chunks most similar to the message
  4. CITE        -- one citation per chunk (original text, document title)
  5. GENERATE    -- LLM answer over the numbered excerpts, markers cleaned
  6. the assistant message is stored with its citations

The assistant message keeps the full citation list so every ``[n]`` in its
text resolves by position; the answer returned to the caller lists only
the citations the text actually references.

Retrieval and completion failures propagate as :class:`CompletionError`
with a generic message; the original error is logged and chained.

Suggested prompts are generated from a sample of stored documents and
cached for a few minutes (``cachetools.TTLCache``).
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from cachetools import TTLCache

from src.models.chat import AnswerResult, Citation, Conversation, Message, MessageRole
from src.utils.errors import (
    CompletionError,
    EmbeddingError,
    NotFoundError,
    VectorSearchError,
)
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.interfaces.document_store import IDocumentStore
    from src.interfaces.llm_provider import ILLMProvider
    from src.services.citation_service import CitationReconstructor
    from src.services.response_generator import ResponseGenerator
    from src.services.retrieval_service import RetrievalEngine

logger: structlog.BoundLogger = get_logger(__name__)

DEFAULT_CONVERSATION_TITLE = "New Conversation"
ANSWER_FAILED_MESSAGE = "Failed to generate a response"

EMPTY_LIBRARY_PROMPTS = [
    "What documents should I upload to get started?",
    "How does this RAG system work?",
    "What file formats are supported for upload?",
]
FALLBACK_PROMPTS = [
    "What documents should I upload?",
    "How does this system work?",
    "What file formats are supported?",
]

_TITLE_PROMPT = (
    "Generate a short, concise title (4-6 words) for a conversation that starts "
    "with this message: {message}. Do not use quotation marks in the title."
)
_SUGGESTIONS_PROMPT = (
    "Based on these documents, generate 5 specific questions a user might ask:\n\n"
    "{summary}\n\n"
    "Generate 5 questions, one per line, without numbering or bullet points."
)
_QUOTES = re.compile(r"[\"']")
_MAX_TITLE_CHARS = 100
_SAMPLE_DOCUMENTS = 5
_EXCERPT_CHARS = 100


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ChatService:
    """Conversation CRUD plus question answering over the document library.

    Parameters
    ----------
    store:
        Conversations, messages and documents.
    retrieval:
        Finds the excerpts an answer is grounded on.
    citations:
        Turns excerpts into citations.
    generator:
        Produces the cited answer.
    llm:
        Used directly for titles and suggested prompts.
    suggestions_ttl:
        Seconds a generated list of suggested prompts is reused.
    """

    def __init__(
        self,
        store: IDocumentStore,
        retrieval: RetrievalEngine,
        citations: CitationReconstructor,
        generator: ResponseGenerator,
        llm: ILLMProvider,
        suggestions_ttl: float = 300.0,
    ) -> None:
        self._store = store
        self._retrieval = retrieval
        self._citations = citations
        self._generator = generator
        self._llm = llm
        self._suggestions: TTLCache[str, list[str]] = TTLCache(maxsize=1, ttl=suggestions_ttl)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def create_conversation(
        self, title: str | None = None, user_id: str | None = None
    ) -> Conversation:
        conversation = Conversation(
            id=str(uuid.uuid4()),
            title=title or DEFAULT_CONVERSATION_TITLE,
            user_id=user_id,
        )
        return await self._store.create_conversation(conversation)

    async def list_conversations(self) -> list[Conversation]:
        return await self._store.list_conversations()

    async def get_conversation(self, conversation_id: str) -> tuple[Conversation, list[Message]]:
        conversation = await self._store.get_conversation(conversation_id)
        messages = await self._store.list_messages(conversation_id)
        return conversation, messages

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._store.delete_conversation(conversation_id)
        logger.info("conversation_deleted", conversation_id=conversation_id)

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    async def send_message(
        self,
        conversation_id: str,
        content: str,
        document_id: str | None = None,
        top_k: int | None = None,
    ) -> tuple[Message, Message, AnswerResult]:
        """Store a user message, answer it, and store the answer.

        Returns
        -------
        tuple
            ``(user_message, assistant_message, answer)``.

        Raises
        ------
        NotFoundError
            If the conversation does not exist.
        CompletionError
            If retrieval or generation failed.
        """
        conversation = await self._store.get_conversation(conversation_id)
        history = await self._store.list_messages(conversation_id)

        user_message = await self._store.add_message(
            Message(
                id=str(uuid.uuid4()),
                conversation_id=conversation_id,
                role=MessageRole.USER,
                content=content,
            )
        )

        if not any(m.role is MessageRole.USER for m in history):
            if conversation.title == DEFAULT_CONVERSATION_TITLE:
                title = await self.generate_title(content)
                await self._store.update_conversation(conversation_id, title=title)

        answer, all_citations = await self._answer(
            content, conversation_id, history, document_id=document_id, top_k=top_k
        )

        assistant_message = await self._store.add_message(
            Message(
                id=str(uuid.uuid4()),
                conversation_id=conversation_id,
                role=MessageRole.ASSISTANT,
                content=answer.text,
                citations=all_citations,
            )
        )
        await self._store.update_conversation(conversation_id)
        return user_message, assistant_message, answer

    async def answer(
        self,
        query: str,
        conversation_id: str,
        history: list[Message],
        document_id: str | None = None,
        top_k: int | None = None,
    ) -> AnswerResult:
        """Answer ``query`` without storing anything."""
        result, _ = await self._answer(
            query, conversation_id, history, document_id=document_id, top_k=top_k
        )
        return result

    async def _answer(
        self,
        query: str,
        conversation_id: str,
        history: list[Message],
        document_id: str | None,
        top_k: int | None,
    ) -> tuple[AnswerResult, list[Citation]]:
        try:
            chunks = await self._retrieval.retrieve(query, top_k=top_k, document_id=document_id)
            titles, contents = await self._load_sources({c.document_id for c in chunks})
            citations = self._citations.reconstruct(
                chunks, conversation_id, titles, document_contents=contents
            )
            result = await self._generator.generate(query, chunks, history, citations)
        except (EmbeddingError, VectorSearchError, CompletionError) as exc:
            logger.error(
                "answer_failed",
                conversation_id=conversation_id,
                error=exc.message,
                error_type=type(exc).__name__,
            )
            raise CompletionError(
                message=ANSWER_FAILED_MESSAGE, provider_name=exc.provider_name
            ) from exc

        logger.info(
            "answer_complete",
            conversation_id=conversation_id,
            chunks=len(chunks),
            citations=len(result.citations),
        )
        return result, citations

    async def _load_sources(
        self, document_ids: set[str]
    ) -> tuple[dict[str, str], dict[str, str]]:
        titles: dict[str, str] = {}
        contents: dict[str, str] = {}
        for document_id in document_ids:
            try:
                document = await self._store.get_document(document_id)
            except NotFoundError:
                # Vectors can outlive a document deleted mid-request.
                logger.warning("citation_document_missing", document_id=document_id)
                continue
            titles[document_id] = document.title
            if document.content:
                contents[document_id] = document.content
        return titles, contents

    # ------------------------------------------------------------------
    # Titles and suggestions
    # ------------------------------------------------------------------

    async def generate_title(self, message: str) -> str:
        """A 4-6 word title for a conversation opening with ``message``."""
        try:
            raw = await self._llm.complete(
                system_prompt="You write short conversation titles.",
                user_prompt=_TITLE_PROMPT.format(message=message),
                temperature=0.0,
                max_tokens=30,
            )
        except CompletionError as exc:
            logger.warning("title_generation_failed", error=exc.message)
            return DEFAULT_CONVERSATION_TITLE

        title = _QUOTES.sub("", raw).strip()[:_MAX_TITLE_CHARS].strip()
        return title or DEFAULT_CONVERSATION_TITLE

    async def suggested_prompts(self) -> list[str]:
        cached = self._suggestions.get("prompts")
        if cached is not None:
            return list(cached)

        documents = await self._store.list_documents(limit=_SAMPLE_DOCUMENTS)
        if not documents:
            return list(EMPTY_LIBRARY_PROMPTS)

        summary = "\n\n".join(
            f"Title: {doc.title}\nExcerpt: {doc.content[:_EXCERPT_CHARS]}..." for doc in documents
        )
        try:
            raw = await self._llm.complete(
                system_prompt="You suggest questions users can ask about their documents.",
                user_prompt=_SUGGESTIONS_PROMPT.format(summary=summary),
                temperature=0.7,
                max_tokens=300,
            )
        except CompletionError as exc:
            logger.warning("suggested_prompts_failed", error=exc.message)
            return list(FALLBACK_PROMPTS)

        prompts = [line.strip() for line in raw.splitlines() if line.strip()]
        if not prompts:
            return list(FALLBACK_PROMPTS)
        self._suggestions["prompts"] = prompts
        return list(prompts)
