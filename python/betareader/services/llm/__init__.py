"""LLM adapter layer.

Provides:
- An OpenAI-compatible chat completions adapter (async, non-streaming)
- LLMClient: platform key + model, error normalization, request logging
- Prompt rendering for summaries, reviews and wiki upkeep

Usage:
    from betareader.services.llm import LLMClient, Turn

    llm = LLMClient(httpx_client, api_key="sk-...", model_name="gpt-4o-mini")
    data = await llm.generate_json([Turn(role="user", content="...")], temperature=0.3)

Rules:
- No retries
- No DB access inside adapters
- No logging of prompts or completions
"""

from betareader.services.llm.adapter import LLMAdapter
from betareader.services.llm.client import LLMClient
from betareader.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from betareader.services.llm.types import (
    LLMOperation,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    Turn,
)

__all__ = [
    "Turn",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "LLMOperation",
    "LLMAdapter",
    "LLMClient",
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
]
