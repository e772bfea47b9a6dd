"""File-type detection and extractor dispatch.

The file type is derived from the file name's extension only.  Extraction
itself is CPU-bound library code, so :meth:`ExtractorRegistry.extract`
runs the chosen extractor in a worker thread.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import PurePath

import structlog

from src.interfaces.text_extractor import ExtractionResult, ITextExtractor
from src.services.ingestion.extractors.pdf_extractor import PDFExtractor
from src.services.ingestion.extractors.tabular_extractor import CSVExtractor, SpreadsheetExtractor
from src.services.ingestion.extractors.text_extractor import (
    HTMLExtractor,
    MarkdownExtractor,
    PlainTextExtractor,
)
from src.services.ingestion.extractors.word_extractor import WordExtractor
from src.utils.errors import ExtractionError, UnsupportedFileTypeError

logger = structlog.get_logger(logger_name=__name__)

# extension -> file type
_EXTENSION_TYPES: dict[str, str] = {
    "pdf": "pdf",
    "docx": "docx",
    "doc": "doc",
    "txt": "txt",
    "md": "md",
    "html": "html",
    "htm": "html",
    "csv": "csv",
    "xlsx": "xlsx",
    "xls": "xls",
}

_WHITESPACE = re.compile(r"\s+")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


def detect_file_type(file_name: str) -> str:
    """Map *file_name*'s extension to a supported file type.

    Raises
    ------
    UnsupportedFileTypeError
        If the extension is missing or not in the supported set.
    """
    extension = PurePath(file_name).suffix.lower().lstrip(".")
    file_type = _EXTENSION_TYPES.get(extension)
    if file_type is None:
        detail = f": .{extension}" if extension else ""
        raise UnsupportedFileTypeError(message=f"Unsupported file extension{detail}")
    return file_type


def sanitize_file_name(file_name: str) -> str:
    """Whitespace runs become ``_``; anything outside ``[a-zA-Z0-9_.-]`` is dropped."""
    return _UNSAFE_CHARS.sub("", _WHITESPACE.sub("_", file_name))


def supported_extensions() -> list[str]:
    return sorted(_EXTENSION_TYPES)


class ExtractorRegistry:
    """Dispatches raw file bytes to the extractor for their file type."""

    def __init__(self, extractors: list[ITextExtractor] | None = None) -> None:
        if extractors is None:
            extractors = [
                PDFExtractor(),
                WordExtractor(),
                PlainTextExtractor(),
                MarkdownExtractor(),
                HTMLExtractor(),
                CSVExtractor(),
                SpreadsheetExtractor(),
            ]
        self._by_type: dict[str, ITextExtractor] = {}
        for extractor in extractors:
            for file_type in extractor.supported_types:
                self._by_type[file_type] = extractor

    @property
    def supported_types(self) -> list[str]:
        return sorted(self._by_type)

    def get(self, file_type: str) -> ITextExtractor:
        extractor = self._by_type.get(file_type)
        if extractor is None:
            raise UnsupportedFileTypeError(message=f"No extractor for file type: {file_type}")
        return extractor

    async def extract(self, file_type: str, data: bytes) -> ExtractionResult:
        extractor = self.get(file_type)
        try:
            result = await asyncio.to_thread(extractor.extract, data)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(
                message=f"Text extraction failed for {file_type}: {exc}",
                provider_name=type(extractor).__name__,
            ) from exc

        logger.info(
            "text_extracted",
            file_type=file_type,
            input_bytes=len(data),
            output_chars=len(result.text),
        )
        return result
