"""Unit tests for RetryPolicy: backoff retries and the final shrink attempt."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.utils.errors import EmbeddingError, FetchError
from src.utils.retry import RetryPolicy


def _policy(max_attempts: int = 5) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, base_delay=0, retry_on=(EmbeddingError,))


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_succeeds_first_time(self) -> None:
        fn = AsyncMock(return_value="ok")
        assert await _policy().run(fn, "payload") == "ok"
        fn.assert_awaited_once_with("payload")

    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self) -> None:
        fn = AsyncMock(side_effect=[EmbeddingError("1"), EmbeddingError("2"), "ok"])

        assert await _policy().run(fn, "payload") == "ok"
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_always_failing_raises_last_error(self) -> None:
        fn = AsyncMock(side_effect=EmbeddingError("down"))

        with pytest.raises(EmbeddingError, match="down"):
            await _policy(max_attempts=3).run(fn, "payload")
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self) -> None:
        fn = AsyncMock(side_effect=FetchError("not mine"))

        with pytest.raises(FetchError):
            await _policy().run(fn, "payload")
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_shrink_earns_one_extra_attempt(self) -> None:
        seen: list[str] = []

        async def fn(payload: str) -> str:
            seen.append(payload)
            if len(payload) > 5:
                raise EmbeddingError("too long")
            return payload

        result = await _policy(max_attempts=2).run(fn, "abcdefghij", shrink=lambda p: p[:5])

        assert result == "abcde"
        assert seen == ["abcdefghij", "abcdefghij", "abcde"]

    @pytest.mark.asyncio
    async def test_shrink_returning_same_payload_does_not_retry(self) -> None:
        fn = AsyncMock(side_effect=EmbeddingError("down"))

        with pytest.raises(EmbeddingError):
            await _policy(max_attempts=2).run(fn, "abc", shrink=lambda p: p)
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_shrunk_attempt_failure_propagates(self) -> None:
        fn = AsyncMock(side_effect=EmbeddingError("down"))

        with pytest.raises(EmbeddingError):
            await _policy(max_attempts=2).run(fn, "abcdef", shrink=lambda p: p[:2])
        assert fn.await_count == 3

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_exposes_max_attempts(self) -> None:
        assert _policy(max_attempts=4).max_attempts == 4
