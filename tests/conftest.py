"""Shared pytest fixtures for the Citewise test suite."""

from __future__ import annotations

import hashlib
import math
import re
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import DocumentChunk, RetrievedChunk
from src.providers.store.sqlite_document_store import SQLiteDocumentStore
from src.services.embedding_generator import EmbeddingGenerator
from src.utils.errors import EmbeddingError, FetchError
from src.utils.retry import RetryPolicy

# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 64

_WORD = re.compile(r"[a-z0-9]+")


def bag_of_words_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Hash each lowercase word into one of ``dim`` buckets and L2-normalise.

    Texts sharing words get a positive cosine similarity, identical texts
    score 1.0, and the same text always produces the same vector.
    """
    vector = [0.0] * dim
    for word in _WORD.findall(text.lower()):
        bucket = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:4], "little")
        vector[bucket % dim] += 1.0
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        vector[0] = 1.0
        return vector
    return [v / magnitude for v in vector]


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    ``fail_times`` makes the first N calls raise :class:`EmbeddingError`;
    ``fail_on`` makes every call whose text contains that marker raise.
    """

    def __init__(self, fail_times: int = 0, fail_on: str | None = None) -> None:
        self.calls: list[str] = []
        self._fail_times = fail_times
        self._fail_on = fail_on

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if len(self.calls) <= self._fail_times:
            raise EmbeddingError(message="transient failure", provider_name="mock-embedding")
        if self._fail_on is not None and self._fail_on in text:
            raise EmbeddingError(message="poisoned input", provider_name="mock-embedding")
        return bag_of_words_vector(text)

    def get_dimension(self) -> int:
        return EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store scoring by exact cosine similarity."""

    def __init__(self) -> None:
        self.store: dict[str, tuple[DocumentChunk, list[float]]] = {}

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        for chunk, vector in zip(chunks, embeddings):
            self.store[chunk.chunk_id] = (chunk, vector)
        return len(chunks)

    async def search(
        self,
        vector: list[float],
        top_k: int,
        document_id: str | None = None,
        min_similarity: float = 0.0,
    ) -> list[RetrievedChunk]:
        scored: list[RetrievedChunk] = []
        for chunk, stored in self.store.values():
            if document_id and chunk.document_id != document_id:
                continue
            similarity = max(0.0, min(1.0, _cosine(vector, stored)))
            if similarity < min_similarity:
                continue
            scored.append(
                RetrievedChunk(
                    chunk_id=chunk.chunk_id,
                    document_id=chunk.document_id,
                    content=chunk.content,
                    metadata=chunk.metadata,
                    similarity_score=similarity,
                )
            )
        scored.sort(key=lambda c: c.similarity_score, reverse=True)
        return scored[:top_k]

    async def delete_by_document(self, document_id: str) -> int:
        doomed = [cid for cid, (c, _) in self.store.items() if c.document_id == document_id]
        for chunk_id in doomed:
            del self.store[chunk_id]
        return len(doomed)

    async def count(self) -> int:
        return len(self.store)

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


class MockObjectStorage(IObjectStorageProvider):
    """Dict-backed object storage addressed by ``memory://`` URLs."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    async def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        self.objects[path] = data
        return f"memory://{path}"

    async def get(self, url: str) -> bytes:
        path = url.removeprefix("memory://")
        if path not in self.objects:
            raise FetchError(message=f"No such object: {url}", provider_name="mock-storage")
        return self.objects[path]

    async def delete(self, path: str) -> None:
        self.objects.pop(path, None)

    def get_provider_name(self) -> str:
        return "mock-storage"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def embedding_generator(mock_embedding_provider: MockEmbeddingProvider) -> EmbeddingGenerator:
    """EmbeddingGenerator over the mock provider with no backoff waits."""
    return EmbeddingGenerator(
        provider=mock_embedding_provider,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0, retry_on=(EmbeddingError,)),
    )


@pytest.fixture
def vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def object_storage() -> MockObjectStorage:
    return MockObjectStorage()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider with a scriptable ``complete``.

    Override with ``mock_llm_provider.complete.return_value = "..."`` or
    ``mock_llm_provider.complete.side_effect = [...]`` in specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="An answer.")
    return mock


@pytest.fixture
async def document_store(tmp_path: Path) -> SQLiteDocumentStore:
    """SQLiteDocumentStore on a temporary database, already initialised."""
    store = SQLiteDocumentStore(db_path=tmp_path / "citewise-test.db")
    await store.initialize()
    return store
