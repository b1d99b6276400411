"""Log guard utilities.

Never-log policy:
- API keys and bearer tokens
- Rendered prompts
- Chapter text and wiki content

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
- Token counts, latency, provider request ID
"""

import hashlib
import os

from betareader.logging import get_logger

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "content",
        "text",
        "api_key",
        "bearer",
        "token",
        "secret",
        "password",
        "chapter_text",
        "summary_text",
        "review_text",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")

_logger = get_logger(__name__)


def hash_text(value: str) -> str:
    """Stable SHA-256 hex digest, for log correlation without exposing content."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used
    without a redacted suffix. In production, logs a warning instead.

    Usage:
        logger.info("llm.request.started", **safe_kv(
            model_name="gpt-4o-mini",
            message_chars=1234,       # OK: _chars suffix
            # prompt="hello world",   # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for BETA_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("BETA_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        _logger.warning("safe_kv_violation", forbidden_keys=violations)

    return kwargs
