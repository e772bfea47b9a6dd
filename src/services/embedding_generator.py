"""Embedding generation with length capping, timeouts and retries.

:class:`EmbeddingGenerator` sits between the pipeline and an
:class:`~src.interfaces.embedding_provider.IEmbeddingProvider`.  For every
text it:

1. truncates the input to ``max_input_chars`` (6000 by default);
2. sends one request bounded by ``timeout_seconds``;
3. treats a timeout, a provider error, or an empty/non-finite vector as a
   retryable failure and retries with exponential backoff via
   :class:`~src.utils.retry.RetryPolicy`;
4. if every attempt failed and the input is longer than
   ``shrunk_input_chars`` (2000), makes one last attempt with the input
   cut to that length.

If all of that fails the caller gets an :class:`EmbeddingError`.

Degraded fallback
-----------------
:meth:`EmbeddingGenerator.embed_for_storage` can, when explicitly enabled,
substitute a random vector for a chunk whose embedding failed, so one bad
chunk does not leave a hole in a document.  Such a vector carries no
meaning, so the result is flagged ``degraded`` and the coordinator records
it on the chunk and in the document's ``degradedChunks`` count.  Query
embeddings never use the fallback.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import numpy as np
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError
from src.utils.logging import get_logger
from src.utils.retry import RetryPolicy

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass(frozen=True)
class EmbeddingResult:
    vector: list[float]
    degraded: bool = False


class EmbeddingGenerator:
    """Turns text into vectors under a fixed request policy.

    Parameters
    ----------
    provider:
        The embedding service adapter.
    max_input_chars:
        Inputs are truncated to this many characters before the first request.
    shrunk_input_chars:
        Length used for the single extra attempt after retries are exhausted.
    timeout_seconds:
        Per-request timeout.
    retry_policy:
        Backoff policy; defaults to 5 attempts starting at 1 s.
    allow_degraded_fallback:
        Enables the random-vector fallback in :meth:`embed_for_storage`.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        max_input_chars: int = 6000,
        shrunk_input_chars: int = 2000,
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        allow_degraded_fallback: bool = False,
    ) -> None:
        self._provider = provider
        self._max_input_chars = max_input_chars
        self._shrunk_input_chars = shrunk_input_chars
        self._timeout = timeout_seconds
        self._policy = retry_policy or RetryPolicy(
            max_attempts=5,
            base_delay=1.0,
            retry_on=(EmbeddingError,),
            name="embedding",
        )
        self._allow_degraded = allow_degraded_fallback
        self._rng = np.random.default_rng()

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Return the embedding of ``text``.

        Raises
        ------
        EmbeddingError
            If no attempt (including the shrunk final attempt) succeeded.
        """
        if not text or not text.strip():
            raise EmbeddingError(message="Cannot embed empty text")

        capped = text[: self._max_input_chars]
        if len(capped) < len(text):
            _logger.debug("embedding_input_truncated", original_chars=len(text))

        try:
            return await self._policy.run(self._embed_once, capped, shrink=self._shrink)
        except EmbeddingError as exc:
            raise EmbeddingError(
                message=f"Embedding failed after retries: {exc.message}",
                provider_name=exc.provider_name or self._provider.get_provider_name(),
            ) from exc

    async def embed_for_storage(self, text: str) -> EmbeddingResult:
        """Embed a chunk, falling back to a flagged random vector if enabled."""
        try:
            return EmbeddingResult(vector=await self.embed(text))
        except EmbeddingError as exc:
            if not self._allow_degraded:
                raise
            _logger.warning("embedding_degraded_fallback", error=str(exc))
            return EmbeddingResult(vector=self._random_vector(), degraded=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_once(self, text: str) -> list[float]:
        try:
            vector = await asyncio.wait_for(
                self._provider.embed_single(text), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            raise EmbeddingError(
                message=f"Embedding request timed out after {self._timeout}s",
                provider_name=self._provider.get_provider_name(),
            ) from exc
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"Embedding request failed: {exc}",
                provider_name=self._provider.get_provider_name(),
            ) from exc

        if not _is_valid_vector(vector):
            raise EmbeddingError(
                message="Embedding service returned an empty or invalid vector",
                provider_name=self._provider.get_provider_name(),
            )
        return [float(v) for v in vector]

    def _shrink(self, text: str) -> str | None:
        if len(text) > self._shrunk_input_chars:
            return text[: self._shrunk_input_chars]
        return None

    def _random_vector(self) -> list[float]:
        return self._rng.uniform(-1.0, 1.0, self.dimension).tolist()


def _is_valid_vector(vector: object) -> bool:
    if not isinstance(vector, (list, tuple)) or not vector:
        return False
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in vector):
        return False
    return bool(np.isfinite(np.asarray(vector, dtype=float)).all())
