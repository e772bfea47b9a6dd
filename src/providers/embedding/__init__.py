"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
They are stored in ChromaDB and used for similarity search.

OpenAIEmbeddingProvider (text-embedding-3-small, 1536 dims) is the
implementation of IEmbeddingProvider; it also serves OpenAI-compatible
endpoints when OPENAI_BASE_URL is set.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
