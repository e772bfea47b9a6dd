"""PDF text extraction via PyMuPDF (fitz).

Text is read page by page and pages are joined with a blank line, so page
breaks become paragraph boundaries for the chunker.  Scanned PDFs without
a text layer yield empty text, which the coordinator reports as an error.
"""

from __future__ import annotations

import fitz
import structlog

from src.interfaces.text_extractor import ExtractionResult, ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFExtractor(ITextExtractor):
    supported_types = ("pdf",)

    def extract(self, data: bytes) -> ExtractionResult:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                message=f"Cannot open PDF: {exc}", provider_name="pymupdf"
            ) from exc

        pages: list[str] = []
        try:
            page_count = len(doc)
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", page_count=page_count)

        return ExtractionResult(
            text="\n\n".join(pages),
            metadata={"pageCount": page_count, "pagesWithText": len(pages)},
        )
