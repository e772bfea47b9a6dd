"""Heuristic classifier for table-of-contents and index noise.

Extracted documents often contain navigation text (tables of contents,
indexes, page-number listings) that embeds close to almost any query and
crowds real passages out of the retrieval results.  :class:`TocFilter`
scores a chunk against a set of named :class:`TocRule` objects; each rule
is a plain predicate with a weight, and the confidence is the capped sum
of the weights of the rules that fire.

Rules with weight 1.0 are decisive on their own.  The lighter rules catch
layouts that are only suspicious in combination.

These are heuristics: false positives and negatives are expected and the
test suite pins the behaviour on representative inputs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

import structlog

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_FINGERPRINTS: tuple[str, ...] = (
    r"Conversation\s+Conversion\s+Strategies",
    r"Prospecting\s+Calls",
    r"Yes\s+Ladder",
    r"Memory\s+Anchor",
    r"The\s+Switch",
    r"Clarifying\s+Questions",
    r"Whyisthatimportantnow",
    r"Howlonghasthisbeengoingonfor",
    r"Whendoyouneedthisfixedby",
    r"Solution\s+Strategies",
    r"Green\s+Brain(\s+Sandwich)?",
)

_HEADING = re.compile(
    r"table\s+of\s+contents|^[^\S\n]*contents[^\S\n]*$|^[^\S\n]*toc[^\S\n]*$",
    re.IGNORECASE | re.MULTILINE,
)
_DIGIT = re.compile(r"\d")
_WORD_NUMBER_RUN = re.compile(r"(\w+\s+\d+\s+){3,}")
_NUMBERED_ENTRY = re.compile(r"^\s*(\d+\.|\d+\.\d+\.?|\w+\.)\s+.+\s+\d+\s*$")
_TRAILING_PAGE = re.compile(r"\s+\d+\s*$")
_TITLE_CASE_PAGE = re.compile(r"(?:[A-Z][a-z]+\s+)+\d+")
_CAMEL_PAGE = re.compile(r"(?:[A-Z][a-z]+){2,}\d+")
# Years (19xx, 20xx) are common in prose and rare as page numbers.
_WORD_NUMBER_PAIR = re.compile(r"\b[A-Za-z]+\s+(?!(?:19|20)\d\d\b)\d{1,4}\b")


@dataclass(frozen=True)
class TocRule:
    name: str
    weight: float
    check: Callable[[str], bool]


@dataclass(frozen=True)
class TocScore:
    confidence: float
    fired_rules: tuple[str, ...]


def _lines(text: str) -> list[str]:
    return [line for line in text.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Rule predicates
# ---------------------------------------------------------------------------

def has_toc_heading(text: str) -> bool:
    """"Table of contents" anywhere, or "contents"/"toc" alone on a line."""
    return _HEADING.search(text) is not None


def is_dense_with_digits(text: str, min_length: int = 200, min_ratio: float = 0.9) -> bool:
    """Almost no whitespace plus digits: an OCR-mangled TOC page."""
    if len(text) <= min_length or not _DIGIT.search(text):
        return False
    non_whitespace = sum(1 for ch in text if not ch.isspace())
    return non_whitespace / len(text) > min_ratio


def has_word_number_runs(text: str) -> bool:
    """Three or more consecutive ``word number`` groups."""
    return _WORD_NUMBER_RUN.search(text) is not None


def has_numbered_entries(text: str, min_fraction: float = 0.2) -> bool:
    """More than ``min_fraction`` of lines look like ``1.2 Title ..... 14``."""
    lines = _lines(text)
    matches = sum(1 for line in lines if _NUMBERED_ENTRY.match(line))
    return matches >= 2 and matches / len(lines) > min_fraction


def has_page_number_lines(text: str, min_fraction: float = 0.25) -> bool:
    """More than ``min_fraction`` of (at least four) lines end in a page number."""
    lines = _lines(text)
    if len(lines) <= 3:
        return False
    matches = sum(1 for line in lines if _TRAILING_PAGE.search(line))
    return matches / len(lines) > min_fraction


def has_title_case_pages(text: str) -> bool:
    return len(_TITLE_CASE_PAGE.findall(text)) >= 3


def has_camel_page_runs(text: str) -> bool:
    return len(_CAMEL_PAGE.findall(text)) >= 2


def has_word_number_pairs(text: str, min_pairs: int = 3, min_ratio: float = 0.15) -> bool:
    """Many ``Word 12`` pairs relative to the word count."""
    pairs = len(_WORD_NUMBER_PAIR.findall(text))
    words = len(text.split())
    return pairs >= min_pairs and words > 0 and pairs / words > min_ratio


def _fingerprint_rule(patterns: Iterable[str]) -> Callable[[str], bool]:
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]

    def check(text: str) -> bool:
        return any(p.search(text) for p in compiled)

    return check


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------

class TocFilter:
    """Scores text against named noise rules.

    Parameters
    ----------
    threshold:
        Confidence at or above which :meth:`is_noise` returns True.
    fingerprints:
        Regular expressions for known-bad literal phrases.  Defaults to
        :data:`DEFAULT_FINGERPRINTS`.
    """

    def __init__(
        self,
        threshold: float = 0.5,
        fingerprints: Iterable[str] | None = None,
    ) -> None:
        self._threshold = threshold
        patterns = tuple(fingerprints) if fingerprints else DEFAULT_FINGERPRINTS
        self._rules: tuple[TocRule, ...] = (
            TocRule("toc_heading", 1.0, has_toc_heading),
            TocRule("dense_digits", 1.0, is_dense_with_digits),
            TocRule("word_number_runs", 1.0, has_word_number_runs),
            TocRule("numbered_entries", 1.0, has_numbered_entries),
            TocRule("word_number_pairs", 1.0, has_word_number_pairs),
            TocRule("fingerprints", 1.0, _fingerprint_rule(patterns)),
            TocRule("page_number_lines", 0.5, has_page_number_lines),
            TocRule("title_case_pages", 0.3, has_title_case_pages),
            TocRule("camel_page_runs", 0.3, has_camel_page_runs),
        )

    @property
    def rules(self) -> tuple[TocRule, ...]:
        return self._rules

    @property
    def threshold(self) -> float:
        return self._threshold

    def score(self, text: str) -> TocScore:
        """Return the capped weight sum of the rules that fire on ``text``."""
        if not text or not text.strip():
            return TocScore(confidence=0.0, fired_rules=())
        fired = tuple(rule.name for rule in self._rules if rule.check(text))
        weight = sum(rule.weight for rule in self._rules if rule.name in fired)
        return TocScore(confidence=min(1.0, weight), fired_rules=fired)

    def is_noise(self, text: str) -> bool:
        result = self.score(text)
        if result.confidence >= self._threshold:
            logger.debug("toc_noise_detected", rules=list(result.fired_rules))
            return True
        return False
