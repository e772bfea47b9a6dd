"""Abstract base class for vector-store service providers.

Defines the contract for storing pre-embedded chunks and searching them by
vector similarity.  The vector store never computes embeddings itself:
callers embed queries and chunks through the embedding generator first.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by ingestion and retrieval.

    All methods are async so network-backed stores do not block the loop.
    """

    @abstractmethod
    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Store chunks with their pre-computed embeddings (upsert by chunk id).

        Parameters
        ----------
        chunks:
            Chunks to store.
        embeddings:
            One vector per chunk, positionally aligned.

        Returns
        -------
        int
            Number of chunks stored.

        Raises
        ------
        src.utils.errors.VectorSearchError
            If the write fails.
        """

    @abstractmethod
    async def search(
        self,
        vector: list[float],
        top_k: int,
        document_id: str | None = None,
        min_similarity: float = 0.0,
    ) -> list[RetrievedChunk]:
        """Return up to ``top_k`` nearest chunks, most similar first.

        Parameters
        ----------
        vector:
            The query embedding.
        top_k:
            Maximum number of results.
        document_id:
            When given, only chunks of this document are considered.
        min_similarity:
            Results below this similarity (0..1) are dropped.

        Raises
        ------
        src.utils.errors.VectorSearchError
            If the query fails.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk of a document and return how many were removed."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored chunks."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
