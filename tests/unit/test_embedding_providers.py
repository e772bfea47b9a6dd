"""Unit tests for the OpenAI-compatible embedding provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config.settings import Settings
from src.utils.errors import EmbeddingError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_model": "",
        "openai_embedding_model": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(count: int, dim: int = 1536) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=[0.5] * dim) for _ in range(count)]
    response.usage = MagicMock(total_tokens=10 * count)
    return response


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_provider_names(self) -> None:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert OpenAIEmbeddingProvider(_settings()).get_provider_name() == "openai_embedding"
        compatible = OpenAIEmbeddingProvider(_settings(openai_base_url="http://embed.test/v1"))
        assert compatible.get_provider_name() == "openai-compatible_embedding"

    @pytest.mark.parametrize(
        ("model", "dimension"),
        [
            ("text-embedding-3-small", 1536),
            ("text-embedding-3-large", 3072),
            ("local-embedder", 768),
        ],
    )
    def test_dimension_by_model(self, model: str, dimension: int) -> None:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        provider = OpenAIEmbeddingProvider(_settings(), model=model, default_dimension=768)
        assert provider.get_dimension() == dimension

    def test_is_available_without_key(self) -> None:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_embed_batch(self, settings: Settings) -> None:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response(2))

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(["one", "two"])

        assert len(result) == 2
        assert len(result[0]) == 1536
        assert mock_client.embeddings.create.call_args.kwargs["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_embed_empty_list_makes_no_call(self, settings: Settings) -> None:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            assert await provider.embed([]) == []

        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response(1))

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed_single("hello")

        assert len(result) == 1536

    @pytest.mark.asyncio
    async def test_embed_single_no_vectors(self, settings: Settings) -> None:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response(0))

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError, match="no vectors"):
                await provider.embed_single("hello")

    @pytest.mark.asyncio
    async def test_embed_error(self, settings: Settings) -> None:
        import openai

        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="Rate limit", request=MagicMock(), body=None)
        )

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError, match="Rate limit"):
                await provider.embed(["test"])
