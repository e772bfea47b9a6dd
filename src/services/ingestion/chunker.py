"""Recursive character chunking with overlap and original line mapping.

Splits normalized document text into :class:`~src.models.rag.DocumentChunk`
objects of at most ``chunk_size`` characters.

The split is recursive over an ordered separator list: paragraph breaks
first, then line breaks, then sentence ends, then spaces, and finally
single characters.  A piece that is still too large at one level is split
again with the next separator.  Small pieces are merged back together up
to ``chunk_size``, and each new chunk starts with up to ``chunk_overlap``
characters carried over from the end of the previous one, so a sentence
that straddles a boundary is whole in at least one chunk.

Separators stay attached to the piece that follows them, so merged chunks
reproduce the source text exactly apart from leading/trailing whitespace.

After splitting, each chunk is located in the original (pre-normalization)
text by :class:`~src.services.ingestion.line_mapper.LineMapper` to record
its line range and verbatim original slice.
"""

from __future__ import annotations

import re
import uuid

import structlog

from src.models.rag import ChunkMetadata, DocumentChunk
from src.services.ingestion.line_mapper import LineMapper
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


class TextChunker:
    """Splits text into overlapping chunks bounded by a character budget.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk.
    chunk_overlap:
        Characters repeated between consecutive chunks.  Must be smaller
        than ``chunk_size``.
    separators:
        Split points in order of preference.  The last one should be ``""``
        so any text can be split down to single characters.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: tuple[str, ...] = _DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ConfigurationError(message=f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ConfigurationError(
                message=(
                    f"chunk_overlap ({chunk_overlap}) must be >= 0 and smaller "
                    f"than chunk_size ({chunk_size})"
                )
            )
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._separators = separators

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def chunk_overlap(self) -> int:
        return self._chunk_overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        document_id: str,
        normalized_text: str,
        original_text: str | None = None,
    ) -> list[DocumentChunk]:
        """Split ``normalized_text`` and annotate chunks with line ranges.

        Parameters
        ----------
        document_id:
            Owning document id stamped on every chunk.
        normalized_text:
            The text to split (output of the text normalizer).
        original_text:
            The text before normalization, used for line mapping.  Defaults
            to ``normalized_text``.

        Returns
        -------
        list[DocumentChunk]
            Chunks in document order.  Chunks that could not be located in
            the original carry no line metadata.
        """
        pieces = self.split_text(normalized_text)
        mapper = LineMapper(original_text if original_text is not None else normalized_text)

        chunks: list[DocumentChunk] = []
        unmapped = 0
        for index, piece in enumerate(pieces):
            span = mapper.locate(piece)
            if span is None:
                unmapped += 1
                metadata = ChunkMetadata()
            else:
                metadata = ChunkMetadata(
                    start_line=span.start_line,
                    end_line=span.end_line,
                    original_text=span.original_text,
                )
            chunks.append(
                DocumentChunk(
                    chunk_id=str(uuid.uuid4()),
                    document_id=document_id,
                    content=piece,
                    chunk_index=index,
                    metadata=metadata,
                )
            )

        logger.info(
            "document_chunked",
            document_id=document_id,
            chunk_count=len(chunks),
            unmapped_chunks=unmapped,
        )
        return chunks

    def split_text(self, text: str) -> list[str]:
        """Split ``text`` into chunk strings without any metadata."""
        if not text or not text.strip():
            return []
        return self._split(text, list(self._separators))

    # ------------------------------------------------------------------
    # Recursive split
    # ------------------------------------------------------------------

    def _split(self, text: str, separators: list[str]) -> list[str]:
        separator = separators[-1]
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1:]
                break

        final_chunks: list[str] = []
        small_pieces: list[str] = []
        for piece in self._split_keeping_separator(text, separator):
            if len(piece) < self._chunk_size:
                small_pieces.append(piece)
                continue
            if small_pieces:
                final_chunks.extend(self._merge(small_pieces))
                small_pieces = []
            if remaining:
                final_chunks.extend(self._split(piece, remaining))
            else:
                final_chunks.append(piece)

        if small_pieces:
            final_chunks.extend(self._merge(small_pieces))
        return final_chunks

    @staticmethod
    def _split_keeping_separator(text: str, separator: str) -> list[str]:
        """Split on ``separator``, attaching it to the start of the following piece."""
        if not separator:
            return list(text)
        parts = re.split(f"({re.escape(separator)})", text)
        pieces = [parts[0]]
        pieces.extend(parts[i] + parts[i + 1] for i in range(1, len(parts) - 1, 2))
        return [p for p in pieces if p]

    def _merge(self, pieces: list[str]) -> list[str]:
        """Merge small pieces into chunks, carrying overlap between them."""
        chunks: list[str] = []
        window: list[str] = []
        total = 0
        for piece in pieces:
            length = len(piece)
            if total + length > self._chunk_size and window:
                joined = "".join(window).strip()
                if joined:
                    chunks.append(joined)
                # Drop pieces from the front until what is left fits the
                # overlap budget and leaves room for the incoming piece.
                while window and (
                    total > self._chunk_overlap or total + length > self._chunk_size
                ):
                    total -= len(window.pop(0))
            window.append(piece)
            total += length

        joined = "".join(window).strip()
        if joined:
            chunks.append(joined)
        return chunks
