"""OpenAI LLM adapter implementation.

- Endpoint: POST {base_url}/chat/completions
- Headers: Authorization: Bearer <key>, Content-Type: application/json
- JSON mode: "response_format": {"type": "json_object"}

Response - extract:
{
  "id": "chatcmpl-...",
  "choices": [{"message": {"content": "<output_text>"}}],
  "usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150}
}

- text = choices[0].message.content
- provider_request_id = response header x-request-id or body id
"""

import httpx

from betareader.services.llm.adapter import LLMAdapter
from betareader.services.llm.errors import LLMError, LLMErrorClass
from betareader.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIAdapter(LLMAdapter):
    """OpenAI-compatible chat completions adapter."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = OPENAI_BASE_URL):
        super().__init__(client)
        self.chat_url = base_url.rstrip("/") + "/chat/completions"

    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        """Non-streaming chat completion."""
        response = await self._client.post(
            self.chat_url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()

        return self._parse_response(response.json(), response.headers)

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        body: dict = {
            "model": req.model_name,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "stream": False,
        }

        if req.max_tokens is not None:
            body["max_tokens"] = req.max_tokens
        if req.temperature is not None:
            body["temperature"] = req.temperature
        if req.json_mode:
            body["response_format"] = {"type": "json_object"}

        return body

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        return {"role": turn.role, "content": turn.content}

    def _parse_response(self, data: dict, headers: httpx.Headers) -> LLMResponse:
        choices = data.get("choices", [])
        if not choices:
            raise LLMError(
                LLMErrorClass.INVALID_OUTPUT,
                "OpenAI response missing choices",
                provider="openai",
            )

        text = (choices[0].get("message") or {}).get("content") or ""

        usage = None
        usage_data = data.get("usage")
        if usage_data:
            usage = LLMUsage(
                prompt_tokens=usage_data.get("prompt_tokens"),
                completion_tokens=usage_data.get("completion_tokens"),
                total_tokens=usage_data.get("total_tokens"),
            )

        provider_request_id = headers.get("x-request-id") or data.get("id")

        return LLMResponse(
            text=text,
            usage=usage,
            provider_request_id=provider_request_id,
        )
