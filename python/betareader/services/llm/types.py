"""Shared type definitions for the LLM adapter layer.

- Turn: Provider-agnostic conversation turn
- LLMRequest: Request to LLM adapter
- LLMUsage: Token usage from provider response
- LLMResponse: Complete response from a non-streaming call
- LLMOperation: Which feature issued the call (for logs only)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal


class LLMOperation(str, Enum):
    """Feature that issued an LLM call."""

    SUMMARY = "summary"
    REVIEW = "review"
    WIKI_CREATE = "wiki_create"
    WIKI_RECONCILE = "wiki_reconcile"
    OTHER = "other"


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn.

    Attributes:
        role: One of "system", "user", or "assistant"
        content: The text content of the turn
    """

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class LLMUsage:
    """Token usage from provider response. Any field may be missing."""

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class LLMRequest:
    """Request to LLM adapter.

    Attributes:
        model_name: The model identifier (e.g., "gpt-4o-mini")
        messages: List of Turn objects (system turn first if present)
        max_tokens: Maximum tokens in the completion, None uses provider default
        temperature: Sampling temperature (0.0 to 2.0), None uses provider default
        json_mode: Ask the provider to return a single JSON object
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int | None = None
    temperature: float | None = None
    json_mode: bool = False


@dataclass(frozen=True)
class LLMResponse:
    """Complete response from non-streaming call.

    Attributes:
        text: The generated text content
        usage: Token usage information (may be None if provider doesn't return it)
        provider_request_id: Provider's request ID for debugging (may be None)
    """

    text: str
    usage: LLMUsage | None
    provider_request_id: str | None
