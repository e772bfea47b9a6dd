"""Semantic retrieval with table-of-contents noise filtering.

Query flow:
  1. EMBED   -- the query goes through the embedding generator (real vectors
                only; the degraded fallback is never used for queries).
  2. SEARCH  -- the vector store is asked for ``overfetch_factor * top_k``
                neighbours so filtering still leaves ``top_k`` results.
  3. FILTER  -- chunks the :class:`~src.services.toc_filter.TocFilter`
                classifies as noise (TOC pages, indexes) are dropped.
  4. TRUNCATE -- the best ``top_k`` survivors are returned, highest
                 similarity first.

Errors from the embedding service or the vector store propagate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.models.rag import RetrievedChunk
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.services.embedding_generator import EmbeddingGenerator
    from src.services.toc_filter import TocFilter

logger: structlog.BoundLogger = get_logger(__name__)


class RetrievalEngine:
    """Ranks stored chunks against a natural-language query.

    Parameters
    ----------
    embedding_generator:
        Embeds the query text.
    vector_store:
        Similarity search over chunk vectors.
    toc_filter:
        Classifies structural noise; ``None`` disables filtering.
    match_threshold:
        Default minimum similarity for a chunk to be returned.
    match_count:
        Default ``top_k``.
    overfetch_factor:
        Multiplier on ``top_k`` for the vector store request.
    """

    def __init__(
        self,
        embedding_generator: EmbeddingGenerator,
        vector_store: IVectorStoreProvider,
        toc_filter: TocFilter | None = None,
        match_threshold: float = 0.7,
        match_count: int = 5,
        overfetch_factor: int = 2,
    ) -> None:
        self._embedding_generator = embedding_generator
        self._vector_store = vector_store
        self._toc_filter = toc_filter
        self._match_threshold = match_threshold
        self._match_count = match_count
        self._overfetch_factor = max(1, overfetch_factor)

    @property
    def match_count(self) -> int:
        return self._match_count

    async def retrieve(
        self,
        query: str,
        top_k: int | None = None,
        document_id: str | None = None,
        min_similarity: float | None = None,
    ) -> list[RetrievedChunk]:
        """Return up to ``top_k`` non-noise chunks most similar to ``query``.

        Parameters
        ----------
        query:
            The natural-language query.  Blank queries return no chunks.
        top_k:
            Number of chunks wanted; defaults to ``match_count``.
        document_id:
            Restrict the search to one document.
        min_similarity:
            Similarity floor; defaults to ``match_threshold``.

        Raises
        ------
        EmbeddingError
            If the query could not be embedded.
        VectorSearchError
            If the vector store query failed.
        """
        if not query or not query.strip():
            logger.debug("retrieve_empty_query")
            return []

        top_k = self._match_count if top_k is None else top_k
        if top_k <= 0:
            return []
        threshold = self._match_threshold if min_similarity is None else min_similarity

        vector = await self._embedding_generator.embed(query)
        candidates = await self._vector_store.search(
            vector,
            top_k=top_k * self._overfetch_factor,
            document_id=document_id,
            min_similarity=threshold,
        )

        kept: list[RetrievedChunk] = []
        dropped = 0
        for chunk in sorted(candidates, key=lambda c: c.similarity_score, reverse=True):
            if self._toc_filter is not None and self._toc_filter.is_noise(chunk.content):
                dropped += 1
                continue
            kept.append(chunk)

        results = kept[:top_k]
        logger.info(
            "retrieval_complete",
            query=query[:80],
            candidates=len(candidates),
            noise_dropped=dropped,
            returned=len(results),
            document_id=document_id,
        )
        return results
