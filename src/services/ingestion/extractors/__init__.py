"""Per-format text extractors and the registry that dispatches to them."""

from src.services.ingestion.extractors.pdf_extractor import PDFExtractor
from src.services.ingestion.extractors.registry import (
    ExtractorRegistry,
    detect_file_type,
    sanitize_file_name,
    supported_extensions,
)
from src.services.ingestion.extractors.tabular_extractor import CSVExtractor, SpreadsheetExtractor
from src.services.ingestion.extractors.text_extractor import (
    HTMLExtractor,
    MarkdownExtractor,
    PlainTextExtractor,
)
from src.services.ingestion.extractors.word_extractor import WordExtractor

__all__ = [
    "CSVExtractor",
    "ExtractorRegistry",
    "HTMLExtractor",
    "MarkdownExtractor",
    "PDFExtractor",
    "PlainTextExtractor",
    "SpreadsheetExtractor",
    "WordExtractor",
    "detect_file_type",
    "sanitize_file_name",
    "supported_extensions",
]
