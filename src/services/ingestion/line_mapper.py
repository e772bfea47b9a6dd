"""Recover original line ranges for chunks of normalized text.

Chunks are cut from *normalized* text, but citations must point at the
text the user uploaded.  The normalizer only inserts or collapses
whitespace, so once every whitespace character is removed from both texts
the two character sequences are identical.  :class:`LineMapper` builds
that whitespace-free view of the original once, together with an offset
table back into the original, and locates each chunk in it:

1. Strip whitespace from the chunk and take its first 50 characters (the
   whole chunk when shorter) as the head probe.
2. Find the probe in the original at or after the previous chunk's match
   (chunks come in document order, so repeated passages resolve to the
   right occurrence), falling back to a search from the start.
3. Find the chunk's end with a tail probe searched from the match, so a
   passage removed by TOC stripping between head and tail does not shift
   the end offset.
4. Count newlines in the original before the start offset and through
   the end offset to get 1-based inclusive line numbers, and keep the
   verbatim original slice.

A chunk whose head probe is not found gets no span; callers store it
without line metadata and count it.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

logger = structlog.get_logger(logger_name=__name__)

_PROBE_LENGTH = 50


@dataclass(frozen=True)
class LineSpan:
    start_line: int
    end_line: int
    original_text: str


def _strip_whitespace(text: str) -> str:
    return "".join(ch for ch in text if not ch.isspace())


class LineMapper:
    """Locates successive chunks in one original text.

    A mapper is stateful (it remembers where the previous chunk matched),
    so use one instance per document and feed chunks in order.
    """

    def __init__(self, original_text: str, probe_length: int = _PROBE_LENGTH) -> None:
        self._original = original_text
        self._probe_length = probe_length
        self._offsets = [i for i, ch in enumerate(original_text) if not ch.isspace()]
        self._compact = "".join(original_text[i] for i in self._offsets)
        self._cursor = 0

    def locate(self, chunk_text: str) -> LineSpan | None:
        """Return the chunk's span in the original text, or None on desync."""
        compact_chunk = _strip_whitespace(chunk_text)
        if not compact_chunk:
            return None

        head = compact_chunk[: self._probe_length]
        start = self._compact.find(head, self._cursor)
        if start == -1:
            start = self._compact.find(head)
        if start == -1:
            logger.debug("chunk_not_located", probe=head)
            return None

        end = self._find_end(compact_chunk, start)
        self._cursor = start

        original_start = self._offsets[start]
        original_end = self._offsets[end - 1] + 1
        return LineSpan(
            start_line=self._original.count("\n", 0, original_start) + 1,
            end_line=self._original.count("\n", 0, original_end) + 1,
            original_text=self._original[original_start:original_end],
        )

    def _find_end(self, compact_chunk: str, start: int) -> int:
        """Return the exclusive end index of the chunk in the compact original."""
        tail = compact_chunk[-self._probe_length:]
        expected = start + len(compact_chunk) - len(tail)
        if self._compact.startswith(tail, expected):
            return expected + len(tail)

        tail_start = self._compact.find(tail, start)
        if tail_start != -1:
            return tail_start + len(tail)
        return min(start + len(compact_chunk), len(self._compact))
