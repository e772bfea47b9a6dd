"""Word document extraction via python-docx.

python-docx reads the XML inside the DOCX zip archive.  Paragraph text is
kept one paragraph per line; table rows follow the paragraphs as
``cell | cell | cell`` lines.

Legacy binary ``.doc`` files are accepted at upload, but only parse when
they are really DOCX archives under the old extension (common with files
re-saved by newer Word versions).  True binary ``.doc`` files raise
:class:`ExtractionError` asking for conversion.
"""

from __future__ import annotations

import io
import zipfile

import docx
import structlog
from docx.opc.exceptions import PackageNotFoundError

from src.interfaces.text_extractor import ExtractionResult, ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_ZIP_MAGIC = b"PK\x03\x04"


class WordExtractor(ITextExtractor):
    supported_types = ("docx", "doc")

    def extract(self, data: bytes) -> ExtractionResult:
        if not data.startswith(_ZIP_MAGIC):
            raise ExtractionError(
                message="Legacy binary .doc files are not supported; save the file as .docx",
                provider_name="python-docx",
            )
        try:
            document = docx.Document(io.BytesIO(data))
        except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError) as exc:
            raise ExtractionError(
                message=f"Cannot open Word document: {exc}", provider_name="python-docx"
            ) from exc

        lines = [p.text for p in document.paragraphs if p.text.strip()]
        table_rows = 0
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    lines.append(" | ".join(cells))
                    table_rows += 1

        logger.debug("docx_extracted", paragraphs=len(document.paragraphs), table_rows=table_rows)
        return ExtractionResult(
            text="\n".join(lines),
            metadata={
                "paragraphCount": len(document.paragraphs),
                "tableCount": len(document.tables),
            },
        )
