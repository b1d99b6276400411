"""Tests for the language-model client and OpenAI adapter.

Covers:
- Request body shape (model, messages, temperature, JSON mode)
- Error classification: 401, 429, 5xx, context length, timeout
- Empty and malformed completions → E_LLM_INVALID_OUTPUT

Note: These tests are pure unit tests that do NOT require database access.
They use respx to mock HTTP requests; no live provider calls.
"""

import json

import httpx
import pytest
import respx

from betareader.services.llm import (
    LLMClient,
    LLMError,
    LLMErrorClass,
    LLMOperation,
    Turn,
    classify_provider_error,
)

BASE_URL = "https://llm.test/v1"
CHAT_URL = f"{BASE_URL}/chat/completions"

MESSAGES = [
    Turn(role="system", content="You are terse."),
    Turn(role="user", content="Say hi."),
]


def completion(content: str, **extra) -> dict:
    return {
        "id": "chatcmpl-123",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
        **extra,
    }


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
async def httpx_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def llm(httpx_client) -> LLMClient:
    return LLMClient(
        httpx_client, api_key="sk-test", model_name="gpt-test", timeout_s=5, base_url=BASE_URL
    )


# =============================================================================
# Success paths
# =============================================================================


class TestGenerate:
    @respx.mock
    async def test_success(self, llm):
        route = respx.post(CHAT_URL).mock(
            return_value=httpx.Response(
                200, json=completion("hi"), headers={"x-request-id": "req-42"}
            )
        )

        response = await llm.generate(MESSAGES, temperature=0.7, operation=LLMOperation.REVIEW)

        assert response.text == "hi"
        assert response.usage.total_tokens == 15
        assert response.provider_request_id == "req-42"

        request = route.calls[0].request
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["model"] == "gpt-test"
        assert body["temperature"] == 0.7
        assert body["stream"] is False
        assert "response_format" not in body
        assert body["messages"] == [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Say hi."},
        ]

    @respx.mock
    async def test_request_id_falls_back_to_body_id(self, llm):
        respx.post(CHAT_URL).mock(return_value=httpx.Response(200, json=completion("hi")))

        response = await llm.generate(MESSAGES)

        assert response.provider_request_id == "chatcmpl-123"

    @respx.mock
    async def test_generate_json_parses_object(self, llm):
        route = respx.post(CHAT_URL).mock(
            return_value=httpx.Response(200, json=completion('{"summary": "ok"}'))
        )

        data = await llm.generate_json(MESSAGES, temperature=0.3)

        assert data == {"summary": "ok"}
        body = json.loads(route.calls[0].request.content)
        assert body["response_format"] == {"type": "json_object"}


# =============================================================================
# Failures
# =============================================================================


class TestErrors:
    @pytest.mark.parametrize(
        "status,body,expected",
        [
            (401, {"error": {"message": "bad key"}}, LLMErrorClass.INVALID_KEY),
            (429, {"error": {"message": "slow down"}}, LLMErrorClass.RATE_LIMIT),
            (500, {"error": {"message": "oops"}}, LLMErrorClass.PROVIDER_DOWN),
            (
                400,
                {"error": {"code": "context_length_exceeded", "message": "too long"}},
                LLMErrorClass.CONTEXT_TOO_LARGE,
            ),
            (404, {"error": {"message": "no such model"}}, LLMErrorClass.MODEL_NOT_AVAILABLE),
        ],
    )
    @respx.mock
    async def test_http_errors_are_classified(self, llm, status, body, expected):
        respx.post(CHAT_URL).mock(return_value=httpx.Response(status, json=body))

        with pytest.raises(LLMError) as exc_info:
            await llm.generate(MESSAGES)

        assert exc_info.value.error_class == expected
        assert exc_info.value.provider == "openai"

    @respx.mock
    async def test_timeout(self, llm):
        respx.post(CHAT_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(LLMError) as exc_info:
            await llm.generate(MESSAGES)

        assert exc_info.value.error_class == LLMErrorClass.TIMEOUT

    @respx.mock
    async def test_network_error(self, llm):
        respx.post(CHAT_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(LLMError) as exc_info:
            await llm.generate(MESSAGES)

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN

    @respx.mock
    async def test_empty_completion_is_invalid_output(self, llm):
        respx.post(CHAT_URL).mock(return_value=httpx.Response(200, json=completion("  ")))

        with pytest.raises(LLMError) as exc_info:
            await llm.generate(MESSAGES)

        assert exc_info.value.error_class == LLMErrorClass.INVALID_OUTPUT

    @respx.mock
    async def test_missing_choices_is_invalid_output(self, llm):
        respx.post(CHAT_URL).mock(return_value=httpx.Response(200, json={"choices": []}))

        with pytest.raises(LLMError) as exc_info:
            await llm.generate(MESSAGES)

        assert exc_info.value.error_class == LLMErrorClass.INVALID_OUTPUT

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
    @respx.mock
    async def test_generate_json_rejects_non_objects(self, llm, content):
        respx.post(CHAT_URL).mock(return_value=httpx.Response(200, json=completion(content)))

        with pytest.raises(LLMError) as exc_info:
            await llm.generate_json(MESSAGES)

        assert exc_info.value.error_class == LLMErrorClass.INVALID_OUTPUT


class TestClassifyProviderError:
    def test_model_not_found_message(self):
        body = {"error": {"message": "The model `gpt-9` does not exist or was not found"}}

        assert classify_provider_error(400, body) == LLMErrorClass.MODEL_NOT_AVAILABLE

    def test_maximum_context_length_message(self):
        body = {"error": {"message": "This model's maximum context length is 8192 tokens"}}

        assert classify_provider_error(400, body) == LLMErrorClass.CONTEXT_TOO_LARGE

    def test_unknown_400_is_provider_down(self):
        assert classify_provider_error(400, None) == LLMErrorClass.PROVIDER_DOWN

    def test_timeout_exception(self):
        assert (
            classify_provider_error(None, None, httpx.ReadTimeout("slow"))
            == LLMErrorClass.TIMEOUT
        )
