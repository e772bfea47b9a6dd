"""Plain text, Markdown and HTML extraction.

Plain text is decoded as UTF-8 (a BOM is dropped, undecodable bytes are
replaced).  Markdown keeps its line structure with inline markup removed,
so line numbers in citations still match the file.  HTML is parsed with
BeautifulSoup; scripts and styles are dropped and block text is kept one
block per line.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from src.interfaces.text_extractor import ExtractionResult, ITextExtractor


def decode_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


class PlainTextExtractor(ITextExtractor):
    supported_types = ("txt",)

    def extract(self, data: bytes) -> ExtractionResult:
        text = decode_text(data)
        return ExtractionResult(text=text, metadata={"lineCount": text.count("\n") + 1})


# Inline Markdown constructs, applied per line in order.
_MD_INLINE_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),       # images -> alt text
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),        # links -> label
    (re.compile(r"`([^`]*)`"), r"\1"),                    # inline code
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),             # bold
    (re.compile(r"(?<!\w)(\*|_)(.+?)\1(?!\w)"), r"\2"),   # italic
    (re.compile(r"~~(.+?)~~"), r"\1"),                    # strikethrough
]
_MD_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+")
_MD_BLOCKQUOTE = re.compile(r"^\s{0,3}>\s?")
_MD_FENCE = re.compile(r"^\s*(```|~~~)")
_MD_RULE = re.compile(r"^\s*([-*_])(\s*\1){2,}\s*$")
_HTML_TAG = re.compile(r"<[^>]+>")


class MarkdownExtractor(ITextExtractor):
    supported_types = ("md",)

    def extract(self, data: bytes) -> ExtractionResult:
        lines: list[str] = []
        in_code = False
        headings = 0
        for line in decode_text(data).splitlines():
            if _MD_FENCE.match(line):
                in_code = not in_code
                lines.append("")
                continue
            if in_code:
                lines.append(line)
                continue
            if _MD_RULE.match(line):
                lines.append("")
                continue
            if _MD_HEADING.match(line):
                headings += 1
                line = _MD_HEADING.sub("", line).rstrip("# ")
            line = _MD_BLOCKQUOTE.sub("", line)
            for pattern, replacement in _MD_INLINE_RULES:
                line = pattern.sub(replacement, line)
            lines.append(_HTML_TAG.sub("", line))

        return ExtractionResult(text="\n".join(lines), metadata={"headingCount": headings})


_BLANK_RUNS = re.compile(r"\n\s*\n+")
_SPACE_RUNS = re.compile(r"[^\S\n]+")


class HTMLExtractor(ITextExtractor):
    supported_types = ("html",)

    def extract(self, data: bytes) -> ExtractionResult:
        soup = BeautifulSoup(decode_text(data), "html.parser")
        for tag in soup(["script", "style", "noscript", "template"]):
            tag.decompose()

        title = soup.title.get_text(strip=True) if soup.title else None
        root = soup.body or soup
        text = root.get_text(separator="\n")
        text = _SPACE_RUNS.sub(" ", text)
        text = "\n".join(line.strip() for line in text.splitlines())
        text = _BLANK_RUNS.sub("\n\n", text).strip()

        metadata = {"htmlTitle": title} if title else {}
        return ExtractionResult(text=text, metadata=metadata)
