"""Unit tests for the table-of-contents noise classifier."""

from __future__ import annotations

import pytest

from src.services.toc_filter import (
    TocFilter,
    has_numbered_entries,
    has_page_number_lines,
    has_toc_heading,
    has_word_number_pairs,
    is_dense_with_digits,
)

_TOC_SAMPLE = (
    "Table of Contents\n"
    "1. Introduction 1\n"
    "2. Getting Started 5\n"
    "3. Advanced Topics 12\n"
    "4. Conclusion 20"
)

_PROSE_SAMPLE = (
    "The committee reviewed the proposal in detail and agreed to move forward "
    "with the second phase of the project after a short discussion about budgets."
)


# ======================================================================
# Filter
# ======================================================================


class TestTocFilter:
    def test_toc_sample_is_noise(self) -> None:
        toc_filter = TocFilter()
        result = toc_filter.score(_TOC_SAMPLE)

        assert toc_filter.is_noise(_TOC_SAMPLE) is True
        assert result.confidence == 1.0
        assert "toc_heading" in result.fired_rules

    def test_prose_is_not_noise(self) -> None:
        toc_filter = TocFilter()
        assert toc_filter.score(_PROSE_SAMPLE).confidence == 0.0
        assert toc_filter.is_noise(_PROSE_SAMPLE) is False

    def test_prose_with_years_is_not_noise(self) -> None:
        text = "In 1999 the company moved to Berlin, and by 2004 it had opened offices in Paris."
        assert TocFilter().is_noise(text) is False

    def test_index_listing_without_heading_is_noise(self) -> None:
        text = "Apples 12\nBananas 14\nCherries 20\nDates 31"
        assert TocFilter().is_noise(text) is True

    @pytest.mark.parametrize("text", ["", "   \n  "])
    def test_blank_text_scores_zero(self, text: str) -> None:
        result = TocFilter().score(text)
        assert result.confidence == 0.0
        assert result.fired_rules == ()

    def test_default_fingerprints(self) -> None:
        assert TocFilter().is_noise("Chapter on Prospecting Calls and more") is True

    def test_custom_fingerprints_replace_defaults(self) -> None:
        toc_filter = TocFilter(fingerprints=[r"Secret\s+Menu"])

        assert toc_filter.is_noise("Welcome to the Secret Menu section") is True
        assert toc_filter.is_noise("We discussed Prospecting Calls today.") is False

    def test_confidence_is_capped(self) -> None:
        noisy = _TOC_SAMPLE + "\nYes Ladder 33\nMemory Anchor 40"
        assert TocFilter().score(noisy).confidence == 1.0

    def test_rules_are_named(self) -> None:
        names = [rule.name for rule in TocFilter().rules]
        assert len(names) == len(set(names))
        assert "fingerprints" in names


# ======================================================================
# Individual rules
# ======================================================================


class TestRules:
    def test_heading_alone_on_line(self) -> None:
        assert has_toc_heading("Contents\nChapter one") is True
        assert has_toc_heading("The contents of the box were unknown.") is False

    def test_dense_digits(self) -> None:
        mangled = "Intro1Basics5Advanced12Closing20Appendix31Index40Glossary" * 4
        assert len(mangled) > 200
        assert is_dense_with_digits(mangled) is True
        assert is_dense_with_digits("short1") is False

    def test_dense_digits_needs_more_than_200_chars(self) -> None:
        short = "Intro1Basics5Advanced12Closing20Appendix31Index40Glossary"
        assert is_dense_with_digits(short) is False
        assert is_dense_with_digits("a1" * 100) is False
        assert is_dense_with_digits("a1" * 101) is True

    def test_numbered_entries(self) -> None:
        lines = "1. Intro 1\n2. Basics 5\nSome prose line here"
        assert has_numbered_entries(lines) is True
        assert has_numbered_entries("1. Only one entry 4") is False

    def test_page_number_lines_need_four_lines(self) -> None:
        assert has_page_number_lines("Intro 1\nBasics 5\nEnd 9") is False
        assert has_page_number_lines("Intro 1\nBasics 5\nMiddle part\nEnd 9") is True

    def test_word_number_pairs_ignore_years(self) -> None:
        assert has_word_number_pairs("Since 1990 and until 2010 and after 2015") is False
        assert has_word_number_pairs("Intro 3 Basics 7 Advanced 9") is True
