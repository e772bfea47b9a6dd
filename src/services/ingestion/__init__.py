"""Document ingestion pipeline for the Citewise knowledge base.

Turns an uploaded document into queryable knowledge:
**fetch -> extract -> normalize -> chunk -> embed -> store**.

1. **Fetch** -- the stored file is read back from object storage with a
   bounded retry.
2. **Extract** (extractors/) -- format-specific readers convert PDF, Word,
   text, Markdown, HTML, CSV and spreadsheet bytes into plain text.
3. **Normalize** (src/utils/text_normalizer.py) -- repairs extraction
   artifacts; the result is what the document stores as its content.
4. **Chunk** (chunker.py / TextChunker) -- overlapping windows split on
   paragraph, line, sentence and word boundaries, each mapped back to a
   1-based line range of the original text (line_mapper.py).
5. **Embed & store** -- vectors go to the vector store, chunk rows to the
   document store, in sequential batches.

IngestionCoordinator drives the stages and the document status machine.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.coordinator import IngestionCoordinator
from src.services.ingestion.extractors import ExtractorRegistry
from src.services.ingestion.line_mapper import LineMapper

__all__ = [
    "ExtractorRegistry",
    "IngestionCoordinator",
    "LineMapper",
    "TextChunker",
]
