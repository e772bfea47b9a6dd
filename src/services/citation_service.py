"""Builds response-scoped citations from retrieved chunks.

Each retrieved chunk becomes one :class:`~src.models.chat.Citation`, in
retrieval order, so citation *n* (1-based) is the excerpt the prompt
labelled ``Document n``.

The citation text is the chunk's stored pre-normalization original when
the line mapper recorded one, otherwise the (normalized) chunk content.
Normalization is never applied again here.

When the owning document's content is supplied, the stored original is
cross-checked against it.  Document content is the normalized text, and
normalization only inserts or collapses whitespace, so the check compares
the two with all whitespace removed.  A mismatch is logged; the stored
original still wins.

Citation ids combine the conversation id, the response timestamp in
milliseconds and the 1-based position, so regenerated answers never reuse
an id.
"""

from __future__ import annotations

import re
import time

import structlog

from src.models.chat import Citation
from src.models.rag import RetrievedChunk
from src.utils.logging import get_logger

UNKNOWN_DOCUMENT_TITLE = "Unknown Document"

_WHITESPACE = re.compile(r"\s+")


def _compact(text: str) -> str:
    return _WHITESPACE.sub("", text)


class CitationReconstructor:
    """Turns retrieved chunks into citations for one response."""

    def __init__(self) -> None:
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def reconstruct(
        self,
        chunks: list[RetrievedChunk],
        conversation_id: str,
        document_titles: dict[str, str],
        document_contents: dict[str, str] | None = None,
        timestamp_ms: int | None = None,
    ) -> list[Citation]:
        """Return one citation per chunk, in the chunks' order.

        Parameters
        ----------
        chunks:
            Retrieval results, in the order they were shown to the LLM.
        conversation_id:
            Scopes the citation ids.
        document_titles:
            ``document_id -> title``; missing ids get ``Unknown Document``.
        document_contents:
            Optional ``document_id -> content`` used for the source cross-check.
        timestamp_ms:
            Response timestamp; defaults to now.
        """
        stamp = int(time.time() * 1000) if timestamp_ms is None else timestamp_ms
        contents = document_contents or {}

        citations: list[Citation] = []
        for index, chunk in enumerate(chunks):
            meta = chunk.metadata
            text = meta.original_text or chunk.content

            content = contents.get(chunk.document_id)
            if meta.original_text and meta.has_line_range and content:
                self._cross_check(chunk, content)

            citations.append(
                Citation(
                    id=f"citation-{conversation_id}-{stamp}-{index + 1}",
                    text=text,
                    document=document_titles.get(chunk.document_id) or UNKNOWN_DOCUMENT_TITLE,
                    document_id=chunk.document_id,
                    start_line=meta.start_line,
                    end_line=meta.end_line,
                    original_text=meta.original_text,
                )
            )
        return citations

    def _cross_check(self, chunk: RetrievedChunk, content: str) -> bool:
        if _compact(chunk.metadata.original_text or "") in _compact(content):
            return True
        self._logger.warning(
            "citation_source_mismatch",
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            start_line=chunk.metadata.start_line,
            end_line=chunk.metadata.end_line,
        )
        return False
