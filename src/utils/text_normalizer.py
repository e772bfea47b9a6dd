"""Text normalization for extracted document text.

Extractors (PDF in particular) frequently lose the whitespace between
words: ``"endOfSentence.Next"``, ``"see[1]for"``, ``"well-known"`` glued
to its neighbours.  :func:`normalize` repairs these artifacts with an
ordered list of regex rules before the text is chunked.

The rules only ever *insert* or *collapse* whitespace.  No visible
character is reordered or removed, which is what lets the line mapper
find a normalized chunk again in the original text by comparing the
non-whitespace character sequences.

:func:`strip_toc_blocks` is a separate, optional preprocessing step that
removes table-of-contents blocks and bare page-number lines.  Unlike
:func:`normalize` it deletes text, so it runs on the original text before
both normalization and line mapping.
"""

import re

# Ordered (pattern, replacement) rules.  Order matters: camelCase splitting
# must run before punctuation spacing so "endOf.Next" becomes
# "end Of. Next" rather than "endOf. Next".
_NORMALIZATION_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"([a-z])([A-Z])"), r"\1 \2"),
    (re.compile(r"([a-zA-Z])([A-Z][a-z])"), r"\1 \2"),
    (re.compile(r"([.?!,;:])([a-zA-Z])"), r"\1 \2"),
    (re.compile(r"([a-zA-Z])(\[)"), r"\1 \2"),
    (re.compile(r"(\])([a-zA-Z])"), r"\1 \2"),
    (re.compile(r"([a-zA-Z])-([a-zA-Z])"), r"\1 - \2"),
]

_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_WS_AROUND_NEWLINE = re.compile(r" ?\n ?")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

_TOC_BLOCK = re.compile(
    r"^[^\S\n]*(Table of Contents|Contents|TOC)[^\S\n]*\n[\s\S]*?\n[^\S\n]*\n",
    re.IGNORECASE | re.MULTILINE,
)
_TOC_LINE = re.compile(
    r"^[^\S\n]*(\d+\.|\d+\.\d+\.?|\w+\.)[^\S\n]+.+[^\S\n]+\d+[^\S\n]*$", re.MULTILINE
)
_PAGE_NUMBER_LINE = re.compile(r"^[^\S\n]*\d+[^\S\n]*$", re.MULTILINE)


def normalize(text: str) -> str:
    """Repair missing spaces and collapse whitespace runs.

    Parameters
    ----------
    text:
        Raw extracted text.

    Returns
    -------
    str
        Normalized text.  Runs of spaces/tabs become a single space and
        three or more consecutive newlines become one blank line; single
        and double newlines are kept so paragraph boundaries survive for
        the chunker.
    """
    if not text:
        return ""

    result = text.replace("\r\n", "\n").replace("\r", "\n")
    for pattern, replacement in _NORMALIZATION_RULES:
        result = pattern.sub(replacement, result)

    result = _HORIZONTAL_WS.sub(" ", result)
    result = _WS_AROUND_NEWLINE.sub("\n", result)
    result = _EXCESS_NEWLINES.sub("\n\n", result)
    return result.strip()


def strip_toc_blocks(text: str) -> str:
    """Remove table-of-contents blocks, numbered TOC lines and page numbers."""
    if not text:
        return ""
    result = _TOC_BLOCK.sub("", text)
    result = _TOC_LINE.sub("", result)
    result = _PAGE_NUMBER_LINE.sub("", result)
    return result
