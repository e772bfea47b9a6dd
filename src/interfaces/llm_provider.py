"""Abstract base class for chat-completion (LLM) providers.

The completion service is a black box with a request/response contract:
a system prompt, a user prompt and optional prior turns go in, one text
answer comes out.  Implementations enforce a hard request timeout and
report every failure as :class:`~src.utils.errors.CompletionError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAILLMProvider (src/providers/llm/)
class ILLMProvider(ABC):
    """Contract for chat-completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        history: list[dict[str, str]] | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> str:
        """Generate a completion.

        Parameters
        ----------
        system_prompt:
            Instructions that set the assistant's behaviour.
        user_prompt:
            The current request.
        history:
            Prior turns as ``{"role": "user"|"assistant", "content": ...}``
            dicts, oldest first.  Sent between the system and user prompts.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on generated tokens.

        Returns
        -------
        str
            The generated text.

        Raises
        ------
        src.utils.errors.CompletionError
            On timeout, API error, or an empty response.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
