"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local, no external
service required.  ChromaDB's client is synchronous, so every call runs in
a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Telemetry off before chromadb is imported; Settings below repeats it
# for versions that ignore the environment variable.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import ChunkMetadata, DocumentChunk, RetrievedChunk
from src.utils.errors import VectorSearchError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Citewise always passes pre-computed embeddings, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Citewise uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "citewise_chunks",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections persisted by older ChromaDB versions with the default
        # embedding function reject a different one; reopen without it.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Upsert pre-embedded chunks into the collection."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[c.chunk_id for c in chunks],
                embeddings=embeddings,
                documents=[c.content for c in chunks],
                metadatas=[self._chunk_to_metadata(c) for c in chunks],
            )
        except Exception as exc:
            raise VectorSearchError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("chromadb_add_chunks", count=len(chunks))
        return len(chunks)

    async def search(
        self,
        vector: list[float],
        top_k: int,
        document_id: str | None = None,
        min_similarity: float = 0.0,
    ) -> list[RetrievedChunk]:
        """Cosine-similarity search, optionally restricted to one document."""
        try:
            stored = await asyncio.to_thread(self._collection.count)
            if stored == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": min(top_k, stored),
            }
            if document_id:
                kwargs["where"] = {"document_id": document_id}

            results = await asyncio.to_thread(self._collection.query, **kwargs)
        except Exception as exc:
            raise VectorSearchError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["documents"] or not results["documents"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(documents)

        retrieved: list[RetrievedChunk] = []
        rows = zip(ids, documents, metadatas, distances, strict=True)
        for chunk_id, text, meta, distance in rows:
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < min_similarity:
                continue
            retrieved.append(self._metadata_to_retrieved(chunk_id, text, meta or {}, similarity))

        retrieved.sort(key=lambda rc: rc.similarity_score, reverse=True)
        logger.info(
            "chromadb_query",
            raw_results=len(documents),
            results_count=len(retrieved),
            document_id=document_id,
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved

    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks belonging to a document."""
        try:
            existing = await asyncio.to_thread(
                self._collection.get, where={"document_id": document_id}
            )
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                await asyncio.to_thread(
                    self._collection.delete, where={"document_id": document_id}
                )
        except Exception as exc:
            raise VectorSearchError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=count)
        return count

    async def count(self) -> int:
        return await asyncio.to_thread(self._collection.count)

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int | float | bool]:
        """Convert a DocumentChunk to a ChromaDB-compatible metadata dict.

        ChromaDB metadata values must be str, int, float, or bool, and
        None is not allowed, so absent line fields are simply omitted.
        """
        meta: dict[str, str | int | float | bool] = {
            "document_id": chunk.document_id,
            "chunk_index": chunk.chunk_index,
            "degraded": chunk.metadata.degraded,
            "noise_score": chunk.metadata.noise_score,
            "created_at": chunk.created_at.isoformat(),
        }
        if chunk.metadata.start_line is not None:
            meta["start_line"] = chunk.metadata.start_line
        if chunk.metadata.end_line is not None:
            meta["end_line"] = chunk.metadata.end_line
        if chunk.metadata.original_text is not None:
            meta["original_text"] = chunk.metadata.original_text
        return meta

    @staticmethod
    def _metadata_to_retrieved(
        chunk_id: str, text: str, meta: dict[str, Any], similarity: float
    ) -> RetrievedChunk:
        """Reverse :meth:`_chunk_to_metadata` into a RetrievedChunk."""
        return RetrievedChunk(
            chunk_id=chunk_id,
            document_id=str(meta.get("document_id", "")),
            content=text,
            metadata=ChunkMetadata(
                start_line=meta.get("start_line"),
                end_line=meta.get("end_line"),
                original_text=meta.get("original_text"),
                degraded=bool(meta.get("degraded", False)),
                noise_score=float(meta.get("noise_score", 0.0)),
            ),
            similarity_score=similarity,
        )
