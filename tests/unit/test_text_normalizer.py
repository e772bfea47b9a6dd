"""Unit tests for text normalization utilities."""

from __future__ import annotations

import re

import pytest

from src.utils.text_normalizer import normalize, strip_toc_blocks


def _compact(text: str) -> str:
    return re.sub(r"\s", "", text)


# ======================================================================
# normalize
# ======================================================================


class TestNormalize:
    """Spacing repairs for extraction artifacts."""

    def test_splits_camel_case_and_sentence_glue(self) -> None:
        assert normalize("endOfSentence.Next") == "end Of Sentence. Next"

    def test_spaces_around_brackets(self) -> None:
        assert normalize("see[1]for details") == "see [1] for details"

    def test_spaces_around_hyphen_between_letters(self) -> None:
        assert normalize("well-known") == "well - known"

    def test_splits_acronym_before_word(self) -> None:
        assert normalize("HTMLParser") == "HTML Parser"

    def test_collapses_horizontal_whitespace(self) -> None:
        assert normalize("a  \t  b") == "a b"

    def test_trims_spaces_around_newlines(self) -> None:
        assert normalize("line one   \n   line two") == "line one\nline two"

    def test_limits_blank_lines_to_one(self) -> None:
        assert normalize("first\n\n\n\n\nsecond") == "first\n\nsecond"

    def test_keeps_paragraph_breaks(self) -> None:
        assert normalize("para one\n\npara two") == "para one\n\npara two"

    def test_converts_carriage_returns(self) -> None:
        assert normalize("one\r\ntwo\rthree") == "one\ntwo\nthree"

    def test_strips_outer_whitespace(self) -> None:
        assert normalize("   padded   ") == "padded"

    @pytest.mark.parametrize("text", ["", None])
    def test_empty_input(self, text: str | None) -> None:
        assert normalize(text) == ""  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "text",
        [
            "endOfSentence.Next sentence[2]here",
            "Tabs\tand   spaces\n\n\n\nand-hyphens",
            "Mixed,punctuation;everywhere:yes!Really?Yes",
        ],
    )
    def test_only_whitespace_changes(self, text: str) -> None:
        """Non-whitespace characters survive in order, which line mapping relies on."""
        assert _compact(normalize(text)) == _compact(text)


# ======================================================================
# strip_toc_blocks
# ======================================================================


class TestStripTocBlocks:
    def test_removes_contents_block_up_to_blank_line(self) -> None:
        text = (
            "Contents\n"
            "1. Introduction 1\n"
            "2. Methods 5\n"
            "\n"
            "The study begins here."
        )
        result = strip_toc_blocks(text)

        assert "Introduction" not in result
        assert "Methods" not in result
        assert "The study begins here." in result

    def test_removes_bare_page_number_lines(self) -> None:
        result = strip_toc_blocks("Some text\n42\nMore text")

        assert "42" not in result
        assert "Some text" in result
        assert "More text" in result

    def test_leaves_prose_alone(self) -> None:
        prose = "The river rose by 3 metres in 1998.\nResidents were evacuated."
        assert strip_toc_blocks(prose) == prose

    def test_empty_input(self) -> None:
        assert strip_toc_blocks("") == ""
