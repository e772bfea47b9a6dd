"""Retry policy shared by every retryable external call.

Wraps tenacity's :class:`~tenacity.AsyncRetrying` with the one extra
behaviour the embedding stage needs: a *shrink hook* that, once all
regular attempts are exhausted, may produce a smaller payload and earn a
single additional attempt.  Callers that have nothing to shrink simply
omit the hook and get plain exponential-backoff retries.

Usage::

    policy = RetryPolicy(max_attempts=5, base_delay=1.0, retry_on=(EmbeddingError,))
    vector = await policy.run(self._embed_once, text, shrink=_shrink_to_2000)
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.utils.logging import get_logger

_P = TypeVar("_P")
_R = TypeVar("_R")

_logger: structlog.BoundLogger = get_logger(__name__)


class RetryPolicy:
    """Exponential-backoff retry with an optional final-attempt shrink hook.

    Parameters
    ----------
    max_attempts:
        Total number of regular attempts (the first call included).
    base_delay:
        Seconds to wait before the second attempt; each later wait doubles.
        ``0`` disables waiting entirely (used by tests).
    max_delay:
        Upper bound on a single wait.
    retry_on:
        Exception types that count as retryable.  Anything else propagates
        immediately.
    name:
        Label used in log events to tell policies apart.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        name: str = "external_call",
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._retry_on = retry_on
        self._name = name

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def run(
        self,
        fn: Callable[[_P], Awaitable[_R]],
        payload: _P,
        shrink: Callable[[_P], _P | None] | None = None,
    ) -> _R:
        """Call ``fn(payload)`` until it succeeds or the policy gives up.

        When every regular attempt fails with a retryable error and
        ``shrink`` returns a payload different from the original, one more
        call is made with the shrunk payload.  Its failure (or the last
        regular failure when no shrink applies) is re-raised unchanged.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(
                multiplier=self._base_delay, exp_base=2, max=self._max_delay
            ),
            retry=retry_if_exception_type(self._retry_on),
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await fn(payload)
        except self._retry_on as exc:
            smaller = shrink(payload) if shrink is not None else None
            if smaller is None or smaller == payload:
                _logger.warning(
                    "retry_exhausted",
                    policy=self._name,
                    attempts=self._max_attempts,
                    error=str(exc),
                )
                raise
            _logger.info(
                "retry_final_attempt_with_shrunk_payload",
                policy=self._name,
                error=str(exc),
            )
            return await fn(smaller)

        # AsyncRetrying either returns from inside the loop or raises.
        raise RuntimeError("retry loop exited without a result")

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        _logger.debug(
            "retrying_call",
            policy=self._name,
            attempt=retry_state.attempt_number,
            error=str(error) if error else None,
        )
