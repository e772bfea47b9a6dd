"""Answer generation over retrieved excerpts, with citation clean-up.

The prompt lists the retrieved excerpts as ``Document 1:``, ``Document 2:``
... and tells the model to cite them as ``[n]``.  Models do not always
comply, so the completion is post-processed before anyone sees it:

  1. internal placeholder markers are rewritten to the canonical form:
     ``CITATION_BADGE_0`` -> ``[1]``, ``CITATION_BADGE_0_2`` -> ``[1][3]``
     (optionally wrapped in ``__`` as some models emit them)
  2. any leftover bare ``CITATION_BADGE`` / ``CITATION_BADGE_`` is removed
  3. ``[n]`` markers that point past the citation list are removed
  4. the citations referenced in the final text are collected in order of
     first appearance and returned as the answer's sources

Completion failures propagate as :class:`CompletionError`.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from src.models.chat import AnswerResult, Citation, Message, MessageRole
from src.models.rag import RetrievedChunk
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.interfaces.llm_provider import ILLMProvider

logger: structlog.BoundLogger = get_logger(__name__)

_CITATION_INSTRUCTIONS = """IMPORTANT CITATION INSTRUCTIONS:
1. Cite information from the provided context with numbered citations like [1], [2], etc.
2. Each citation number must correspond to the document number in the context.
3. Do NOT use formats like CITATION_BADGE_X or any other placeholder format.
4. ALWAYS use the format [n] where n is the number of the source.
5. To cite several sources, use separate brackets like [1][2], not combined formats.
6. Do not cite tables of contents, indexes, or navigation elements.
7. Only cite substantive content that provides actual information.
8. If a chunk lists topics with page numbers, it is likely a table of contents; do not cite it.
9. Pay close attention to document boundaries marked by "Document X:" in the context."""

_NO_CONTEXT = "No relevant documents were found."

_BADGE = re.compile(r"_{0,2}CITATION_BADGE_(\d+)(?:_(\d+))?_{0,2}")
_LEFTOVER_BADGE = re.compile(r"_{0,2}CITATION_BADGE_?_{0,2}")
_MARKER = re.compile(r"[^\S\n]?\[(\d+)\]")
_MARKER_NUMBER = re.compile(r"\[(\d+)\]")


def build_context(chunks: list[RetrievedChunk]) -> str:
    """Number the excerpts the way the citation markers refer to them."""
    return "\n\n".join(
        f"Document {index + 1}:\n{chunk.content}" for index, chunk in enumerate(chunks)
    )


def build_user_prompt(question: str, chunks: list[RetrievedChunk]) -> str:
    context = build_context(chunks) if chunks else _NO_CONTEXT
    return (
        f"{_CITATION_INSTRUCTIONS}\n\n"
        "Context information is below:\n"
        "---------------------\n"
        f"{context}\n"
        "---------------------\n\n"
        f"Given the context information and not prior knowledge, answer the question: {question}"
    )


def rewrite_markers(text: str) -> str:
    """Turn internal placeholder markers into ``[n]`` and drop leftovers."""

    def _badge(match: re.Match[str]) -> str:
        first = f"[{int(match.group(1)) + 1}]"
        if match.group(2) is None:
            return first
        return f"{first}[{int(match.group(2)) + 1}]"

    text = _BADGE.sub(_badge, text)
    return _LEFTOVER_BADGE.sub("", text)


def strip_unresolved(text: str, citation_count: int) -> str:
    """Remove ``[n]`` markers with no matching citation."""

    def _check(match: re.Match[str]) -> str:
        number = int(match.group(1))
        return match.group(0) if 1 <= number <= citation_count else ""

    return _MARKER.sub(_check, text)


def referenced_citations(text: str, citations: list[Citation]) -> list[Citation]:
    """Citations whose ``[n]`` appears in ``text``, in order of first appearance."""
    seen: list[int] = []
    for match in _MARKER_NUMBER.finditer(text):
        number = int(match.group(1))
        if 1 <= number <= len(citations) and number not in seen:
            seen.append(number)
    return [citations[number - 1] for number in seen]


def postprocess(text: str, citations: list[Citation]) -> AnswerResult:
    cleaned = strip_unresolved(rewrite_markers(text), len(citations)).strip()
    return AnswerResult(text=cleaned, citations=referenced_citations(cleaned, citations))


class ResponseGenerator:
    """Produces a cited answer from retrieved chunks.

    Parameters
    ----------
    llm:
        Chat completion provider.
    system_prompt:
        Assistant persona and ground rules (from ``rag.system_prompt``).
    temperature, max_tokens:
        Completion parameters.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        system_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> None:
        self._llm = llm
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def generate(
        self,
        query: str,
        chunks: list[RetrievedChunk],
        history: list[Message],
        citations: list[Citation],
    ) -> AnswerResult:
        """Answer ``query`` from ``chunks``; ``citations[i]`` belongs to ``chunks[i]``.

        Raises
        ------
        CompletionError
            If the completion service fails or times out.
        """
        turns = [
            {"role": message.role.value, "content": message.content}
            for message in history
            if message.role in (MessageRole.USER, MessageRole.ASSISTANT)
        ]
        raw = await self._llm.complete(
            system_prompt=self._system_prompt,
            user_prompt=build_user_prompt(query, chunks),
            history=turns,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        result = postprocess(raw, citations)
        logger.info(
            "answer_generated",
            excerpts=len(chunks),
            citations_available=len(citations),
            citations_used=len(result.citations),
            answer_chars=len(result.text),
        )
        return result
