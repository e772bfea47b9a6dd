"""LLM provider adapters.

OpenAILLMProvider is the concrete implementation of ILLMProvider
(src/interfaces/llm_provider.py).  It also serves OpenAI-compatible APIs
when OPENAI_BASE_URL is set.  main.py builds it and stores it on
FastAPI's app.state.
"""

from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
