"""Unit tests for EmbeddingGenerator: truncation, timeouts, retries, fallback."""

from __future__ import annotations

import asyncio
import math
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.services.embedding_generator import EmbeddingGenerator
from src.utils.errors import EmbeddingError
from src.utils.retry import RetryPolicy
from tests.conftest import EMBEDDING_DIM, MockEmbeddingProvider


def _policy(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, base_delay=0, retry_on=(EmbeddingError,))


def _generator(provider: IEmbeddingProvider, **kwargs) -> EmbeddingGenerator:
    kwargs.setdefault("retry_policy", _policy())
    return EmbeddingGenerator(provider=provider, **kwargs)


def _mock_provider(**embed_single_kwargs) -> MagicMock:
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.get_provider_name.return_value = "mock"
    mock.get_dimension.return_value = 8
    mock.embed_single = AsyncMock(**embed_single_kwargs)
    return mock


# ======================================================================
# embed
# ======================================================================


class TestEmbed:
    @pytest.mark.asyncio
    async def test_returns_vector(self) -> None:
        generator = _generator(MockEmbeddingProvider())
        vector = await generator.embed("hello world")

        assert len(vector) == EMBEDDING_DIM
        assert generator.dimension == EMBEDDING_DIM

    @pytest.mark.asyncio
    async def test_fail_twice_then_succeed(self) -> None:
        provider = MockEmbeddingProvider(fail_times=2)
        vector = await _generator(provider, retry_policy=_policy(5)).embed("hello")

        assert len(vector) == EMBEDDING_DIM
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_always_failing_raises_embedding_error(self) -> None:
        provider = MockEmbeddingProvider(fail_times=100)

        with pytest.raises(EmbeddingError, match="after retries"):
            await _generator(provider).embed("short text")
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_input_capped_at_max_chars(self) -> None:
        provider = MockEmbeddingProvider()
        await _generator(provider, max_input_chars=6000).embed("word " * 1400)

        assert len(provider.calls[0]) == 6000

    @pytest.mark.asyncio
    async def test_final_attempt_uses_shrunk_input(self) -> None:
        provider = MockEmbeddingProvider(fail_times=3)
        vector = await _generator(provider, shrunk_input_chars=2000).embed("word " * 600)

        assert len(vector) == EMBEDDING_DIM
        assert len(provider.calls) == 4
        assert len(provider.calls[-1]) == 2000

    @pytest.mark.asyncio
    async def test_short_input_is_not_shrunk(self) -> None:
        provider = MockEmbeddingProvider(fail_times=3)

        with pytest.raises(EmbeddingError):
            await _generator(provider, shrunk_input_chars=2000).embed("tiny")
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_text_rejected_without_calls(self, text: str) -> None:
        provider = MockEmbeddingProvider()

        with pytest.raises(EmbeddingError):
            await _generator(provider).embed(text)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_empty_vector_is_retried(self) -> None:
        provider = _mock_provider(return_value=[])

        with pytest.raises(EmbeddingError):
            await _generator(provider).embed("hello")
        assert provider.embed_single.await_count == 3

    @pytest.mark.asyncio
    async def test_non_finite_vector_is_rejected(self) -> None:
        provider = _mock_provider(return_value=[0.1, math.nan, 0.3])

        with pytest.raises(EmbeddingError):
            await _generator(provider).embed("hello")

    @pytest.mark.asyncio
    async def test_provider_exception_is_wrapped_and_retried(self) -> None:
        provider = _mock_provider(side_effect=RuntimeError("socket closed"))

        with pytest.raises(EmbeddingError, match="socket closed"):
            await _generator(provider).embed("hello")
        assert provider.embed_single.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self) -> None:
        async def _slow(text: str) -> list[float]:
            await asyncio.sleep(1.0)
            return [0.1] * 8

        provider = _mock_provider(side_effect=_slow)
        generator = _generator(provider, timeout_seconds=0.01, retry_policy=_policy(1))

        with pytest.raises(EmbeddingError, match="timed out"):
            await generator.embed("hello")


# ======================================================================
# embed_for_storage
# ======================================================================


class TestEmbedForStorage:
    @pytest.mark.asyncio
    async def test_real_vector_is_not_degraded(self) -> None:
        result = await _generator(MockEmbeddingProvider()).embed_for_storage("hello")

        assert result.degraded is False
        assert len(result.vector) == EMBEDDING_DIM

    @pytest.mark.asyncio
    async def test_failure_raises_when_fallback_disabled(self) -> None:
        generator = _generator(MockEmbeddingProvider(fail_times=100))

        with pytest.raises(EmbeddingError):
            await generator.embed_for_storage("hello")

    @pytest.mark.asyncio
    async def test_failure_yields_flagged_random_vector_when_enabled(self) -> None:
        generator = _generator(
            MockEmbeddingProvider(fail_times=100), allow_degraded_fallback=True
        )
        result = await generator.embed_for_storage("hello")

        assert result.degraded is True
        assert len(result.vector) == EMBEDDING_DIM
        assert all(-1.0 <= v <= 1.0 for v in result.vector)
