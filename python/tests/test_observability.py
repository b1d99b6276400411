"""Tests for logging context and the log guard.

Covers:
- Redaction utilities (hash_text, safe_kv)
- Request and content ContextVars injected into every event
"""

import pytest

from betareader.logging import (
    add_request_context,
    clear_request_context,
    get_request_id,
    set_content_context,
    set_request_context,
)
from betareader.services.redact import FORBIDDEN_KEYS, hash_text, safe_kv


class TestHashText:
    def test_stable_output(self):
        assert hash_text("hello") == hash_text("hello")
        assert hash_text("hello") != hash_text("world")

    def test_returns_hex_string(self):
        result = hash_text("")
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)


class TestSafeKv:
    def test_allowed_keys_pass_through(self):
        assert safe_kv(model_name="gpt", message_chars=10, _env="test") == {
            "model_name": "gpt",
            "message_chars": 10,
        }

    def test_all_forbidden_keys_blocked(self):
        for key in FORBIDDEN_KEYS:
            with pytest.raises(ValueError):
                safe_kv(**{key: "some value"}, _env="test")

    def test_forbidden_key_only_warns_in_prod(self):
        assert safe_kv(text="chapter body", _env="prod") == {"text": "chapter body"}


class TestContextVars:
    def setup_method(self):
        clear_request_context()

    def teardown_method(self):
        clear_request_context()

    def test_request_context_injected(self):
        set_request_context("req-1", user_id="7", path="/books", method="GET")

        event_dict = add_request_context(None, "info", {})

        assert event_dict == {
            "request_id": "req-1",
            "user_id": "7",
            "path": "/books",
            "method": "GET",
        }

    def test_content_context_injected(self):
        set_request_context("req-1")
        set_content_context(book_id="b1", chapter_id="c1")

        event_dict = add_request_context(None, "info", {"event": "summary_stored"})

        assert event_dict["book_id"] == "b1"
        assert event_dict["chapter_id"] == "c1"

    def test_explicit_fields_win(self):
        set_content_context(chapter_id="c1")

        event_dict = add_request_context(None, "info", {"chapter_id": "c9"})

        assert event_dict["chapter_id"] == "c9"

    def test_clear_clears_all(self):
        set_request_context("req-1", user_id="7")
        set_content_context(book_id="b1")

        clear_request_context()

        assert get_request_id() is None
        assert add_request_context(None, "info", {}) == {}
