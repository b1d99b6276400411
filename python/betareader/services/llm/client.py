"""LLM client: the single entry point services use to reach the model.

- Wraps the OpenAI adapter with the platform key, model and timeout
- Normalizes every provider failure into LLMError (no retries)
- Emits llm.request.started / llm.request.finished / llm.request.failed
  events, guarded by safe_kv so prompts and chapter text never reach logs
- generate_json parses JSON-mode completions into a dict
"""

import json
import time

import httpx

from betareader.logging import get_logger
from betareader.services.llm.adapter import LLMAdapter
from betareader.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from betareader.services.llm.openai_adapter import OPENAI_BASE_URL, OpenAIAdapter
from betareader.services.llm.types import LLMOperation, LLMRequest, LLMResponse, Turn
from betareader.services.redact import safe_kv

logger = get_logger(__name__)

PROVIDER = "openai"
DEFAULT_TIMEOUT_S = 120


class LLMClient:
    """Calls the configured chat model with error normalization and logging."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        model_name: str,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        base_url: str = OPENAI_BASE_URL,
        adapter: LLMAdapter | None = None,
    ):
        """Initialize with the shared HTTP client and provider settings.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            api_key: Platform API key.
            model_name: Chat model used for every request.
            timeout_s: Per-request timeout in seconds.
            base_url: Base URL of an OpenAI-compatible API.
            adapter: Override the provider adapter (tests).
        """
        self._api_key = api_key
        self.model_name = model_name
        self.timeout_s = timeout_s
        self._adapter = adapter or OpenAIAdapter(client, base_url=base_url)

    async def generate(
        self,
        messages: list[Turn],
        *,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
        operation: LLMOperation = LLMOperation.OTHER,
    ) -> LLMResponse:
        """Run one chat completion.

        Raises:
            LLMError: With normalized error class on any failure, including an
                empty completion.
        """
        req = LLMRequest(
            model_name=self.model_name,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=json_mode,
        )
        base = {
            "provider": PROVIDER,
            "model_name": self.model_name,
            "llm_operation": operation.value,
            "json_mode": json_mode,
        }

        logger.info(
            "llm.request.started",
            **safe_kv(**base, message_chars=sum(len(m.content) for m in messages)),
        )
        start = time.monotonic()

        try:
            response = await self._adapter.generate(
                req, api_key=self._api_key, timeout_s=self.timeout_s
            )
        except httpx.TimeoutException as e:
            self._log_failure(base, LLMErrorClass.TIMEOUT, start)
            raise LLMError(LLMErrorClass.TIMEOUT, "Request timed out", provider=PROVIDER) from e
        except httpx.HTTPStatusError as e:
            json_body = self._safe_parse_json(e.response)
            error_class = classify_provider_error(e.response.status_code, json_body)
            self._log_failure(
                base,
                error_class,
                start,
                provider_request_id=e.response.headers.get("x-request-id"),
            )
            raise LLMError(
                error_class,
                f"Provider returned HTTP {e.response.status_code}",
                provider=PROVIDER,
            ) from e
        except httpx.NetworkError as e:
            self._log_failure(base, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(LLMErrorClass.PROVIDER_DOWN, "Network error", provider=PROVIDER) from e
        except LLMError as e:
            self._log_failure(base, e.error_class, start)
            raise
        except Exception as e:
            self._log_failure(base, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                f"Unexpected error: {type(e).__name__}",
                provider=PROVIDER,
            ) from e

        if not response.text.strip():
            self._log_failure(base, LLMErrorClass.INVALID_OUTPUT, start)
            raise LLMError(
                LLMErrorClass.INVALID_OUTPUT, "No content received from model", provider=PROVIDER
            )

        usage = response.usage
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=int((time.monotonic() - start) * 1000),
                tokens_input=usage.prompt_tokens if usage else None,
                tokens_output=usage.completion_tokens if usage else None,
                tokens_total=usage.total_tokens if usage else None,
                provider_request_id=response.provider_request_id,
                output_chars=len(response.text),
            ),
        )
        return response

    async def generate_json(
        self,
        messages: list[Turn],
        *,
        temperature: float | None = None,
        operation: LLMOperation = LLMOperation.OTHER,
    ) -> dict:
        """Run a JSON-mode completion and parse the single object it returns.

        Raises:
            LLMError(INVALID_OUTPUT): Output is not a JSON object.
        """
        response = await self.generate(
            messages, temperature=temperature, json_mode=True, operation=operation
        )
        try:
            data = json.loads(response.text)
        except json.JSONDecodeError as e:
            logger.warning("llm.output.unparsable", llm_operation=operation.value)
            raise LLMError(
                LLMErrorClass.INVALID_OUTPUT, "Model returned malformed JSON", provider=PROVIDER
            ) from e

        if not isinstance(data, dict):
            raise LLMError(
                LLMErrorClass.INVALID_OUTPUT, "Model returned non-object JSON", provider=PROVIDER
            )
        return data

    def _log_failure(
        self,
        base: dict,
        error_class: LLMErrorClass,
        start: float,
        provider_request_id: str | None = None,
    ) -> None:
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error_class.value,
                latency_ms=int((time.monotonic() - start) * 1000),
                provider_request_id=provider_request_id,
            ),
        )

    @staticmethod
    def _safe_parse_json(response: httpx.Response) -> dict | None:
        """Parse an error body without raising."""
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
