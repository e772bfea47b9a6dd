"""CSV and Excel extraction via pandas.

Every row becomes one line of ``column: value`` pairs so each line is a
self-contained fact for retrieval.  All cells are read as strings (no
type inference, so ``007`` stays ``007``) and empty cells are skipped.

Excel workbooks are read sheet by sheet (openpyxl for .xlsx, xlrd for
.xls) with a ``Sheet: name`` header line before each sheet's rows.
"""

from __future__ import annotations

import io

import pandas as pd
import structlog

from src.interfaces.text_extractor import ExtractionResult, ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


def _row_to_line(row: pd.Series) -> str:
    return ", ".join(
        f"{column}: {value}" for column, value in row.items() if str(value).strip()
    )


class CSVExtractor(ITextExtractor):
    supported_types = ("csv",)

    def extract(self, data: bytes) -> ExtractionResult:
        try:
            frame = pd.read_csv(
                io.BytesIO(data), dtype=str, keep_default_na=False, encoding="utf-8-sig"
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
            raise ExtractionError(
                message=f"Cannot parse CSV: {exc}", provider_name="pandas"
            ) from exc

        lines = [line for line in (_row_to_line(row) for _, row in frame.iterrows()) if line]
        return ExtractionResult(
            text="\n".join(lines),
            metadata={"rowCount": len(frame), "columns": [str(c) for c in frame.columns]},
        )


class SpreadsheetExtractor(ITextExtractor):
    supported_types = ("xlsx", "xls")

    def extract(self, data: bytes) -> ExtractionResult:
        try:
            sheets = pd.read_excel(
                io.BytesIO(data), sheet_name=None, dtype=str, keep_default_na=False
            )
        except (ValueError, ImportError, OSError) as exc:
            raise ExtractionError(
                message=f"Cannot read spreadsheet: {exc}", provider_name="pandas"
            ) from exc

        blocks: list[str] = []
        total_rows = 0
        for name, frame in sheets.items():
            lines = [f"Sheet: {name}"]
            for index, (_, row) in enumerate(frame.iterrows()):
                line = _row_to_line(row)
                if line:
                    lines.append(f"Row {index + 1}: {line}")
            total_rows += len(frame)
            blocks.append("\n".join(lines))

        logger.debug("spreadsheet_extracted", sheets=len(sheets), rows=total_rows)
        return ExtractionResult(
            text="\n\n".join(blocks),
            metadata={"sheetNames": [str(n) for n in sheets], "rowCount": total_rows},
        )
