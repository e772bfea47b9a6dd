"""Public interface definitions for all external collaborators.

Every external service Citewise talks to is accessed through the abstract
base classes defined in this package.  Concrete adapters implement these
interfaces and are built in ``src/main.py``; tests inject in-memory fakes.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider               →  OpenAILLMProvider
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IObjectStorageProvider     →  LocalObjectStorage, HttpObjectStorage
    IDocumentStore             →  SQLiteDocumentStore
    ITextExtractor             →  PDFExtractor, WordExtractor, PlainTextExtractor,
                                  MarkdownExtractor, HTMLExtractor, CSVExtractor,
                                  SpreadsheetExtractor (src/services/ingestion/extractors/)
"""

from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.interfaces.text_extractor import ExtractionResult, ITextExtractor
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ExtractionResult",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IObjectStorageProvider",
    "ITextExtractor",
    "IVectorStoreProvider",
]
