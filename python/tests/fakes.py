"""Scripted language-model adapter for service and route tests.

ScriptedAdapter plugs into the real LLMClient, so JSON parsing, error
normalization and request logging run exactly as in production; only the
HTTP call is replaced.
"""

import json
from collections.abc import Callable

from betareader.services.llm import LLMClient
from betareader.services.llm.adapter import LLMAdapter
from betareader.services.llm.prompt import SUMMARY_SYSTEM_PROMPT
from betareader.services.llm.types import LLMRequest, LLMResponse, LLMUsage

Responder = Callable[[LLMRequest], str]


def request_kind(req: LLMRequest) -> str:
    """Classify a request as summary / wiki_create / wiki_reconcile / review."""
    system = req.messages[0].content
    user = req.messages[-1].content
    if system == SUMMARY_SYSTEM_PROMPT:
        return "summary"
    if user.startswith("Create a wiki page"):
        return "wiki_create"
    if user.startswith("Existing wiki page"):
        return "wiki_reconcile"
    return "review"


class ScriptedAdapter(LLMAdapter):
    """Adapter answering from per-kind responders and recording every request."""

    def __init__(self, responders: dict[str, Responder | str | dict | Exception]):
        super().__init__(client=None)  # type: ignore[arg-type]
        self.responders = responders
        self.requests: list[LLMRequest] = []

    def kinds(self) -> list[str]:
        return [request_kind(r) for r in self.requests]

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: int) -> LLMResponse:
        self.requests.append(req)
        responder = self.responders[request_kind(req)]
        if isinstance(responder, Exception):
            raise responder
        if isinstance(responder, dict):
            text = json.dumps(responder)
        elif isinstance(responder, str):
            text = responder
        else:
            text = responder(req)
        return LLMResponse(
            text=text,
            usage=LLMUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
            provider_request_id="req-test",
        )


def make_llm_client(adapter: ScriptedAdapter) -> LLMClient:
    return LLMClient(
        client=None,  # type: ignore[arg-type]
        api_key="sk-test",
        model_name="gpt-test",
        adapter=adapter,
    )


DEFAULT_SUMMARY = {
    "pov": "Alice",
    "characters": ["Alice", {"name": "Bob"}],
    "beats": [
        "Alice arrives in town.",
        "Bob greets Alice at the station.",
        "They argue about the map.",
        "Alice leaves at dawn.",
    ],
    "spoilers_ok": False,
    "summary": "Alice arrives in town and quarrels with Bob before leaving.",
}

DEFAULT_PROFILE = {
    "content": "## Role\nA traveller.",
    "summary": "A restless traveller.",
    "aliases": ["Al"],
    "tags": ["protagonist"],
    "is_major": True,
}

NO_CHANGES = {"has_changes": False}


def default_responders(**overrides) -> dict:
    responders: dict = {
        "summary": DEFAULT_SUMMARY,
        "wiki_create": DEFAULT_PROFILE,
        "wiki_reconcile": NO_CHANGES,
        "review": "A warm, specific review of the chapter.",
    }
    responders.update(overrides)
    return responders
