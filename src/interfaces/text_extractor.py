"""Abstract base class for per-format text extractors.

An extractor turns the raw bytes of one file format into plain text plus
format-specific metadata (page count, sheet names, ...).  Extractors are
synchronous; the registry runs them in a worker thread.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ExtractionResult:
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


# Concrete implementations: src/services/ingestion/extractors/
class ITextExtractor(ABC):
    """Contract for converting file bytes into text."""

    #: File types (as detected from the extension) this extractor handles.
    supported_types: tuple[str, ...] = ()

    @abstractmethod
    def extract(self, data: bytes) -> ExtractionResult:
        """Extract text from ``data``.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the bytes cannot be parsed as this format.
        """
