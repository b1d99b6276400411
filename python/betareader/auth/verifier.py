"""Token verification implementations.

Provides:
- TokenVerifier: Protocol for token verification
- VerifiedIdentity: Identity extracted from a verified token
- Auth0JwksVerifier: Verifier using the Auth0 JWKS and /userinfo endpoint

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientConnectionError,
    PyJWKClientError,
)

from betareader.errors import ApiError, ApiErrorCode

logger = logging.getLogger(__name__)

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60

USERINFO_TIMEOUT_S = 10.0
USERINFO_CACHE_MAX_ENTRIES = 1024

EXPIRED_MESSAGE = "Your session has expired. Please sign in again."
INVALID_MESSAGE = "Your authentication token is invalid. Please sign in again."
UNAVAILABLE_MESSAGE = "Authentication service unavailable"


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity claims from a verified token.

    Attributes:
        sub: Issuer subject, the stable external user key.
        email: Email from the token or from the userinfo endpoint.
        email_verified: Whether the issuer has verified the email.
        name: Display name claim, if any.
        username: preferred_username or nickname claim, if any.
    """

    sub: str
    email: str | None = None
    email_verified: bool = False
    name: str | None = None
    username: str | None = None


class TokenVerifier(Protocol):
    """Protocol for token verification."""

    def verify(self, token: str) -> VerifiedIdentity:
        """Verify token and return the caller's identity.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or the
                identity provider could not be reached.
        """
        ...


class UserInfoCache:
    """Bounded in-process TTL cache for userinfo lookups, keyed by raw token."""

    def __init__(self, ttl_seconds: int, max_entries: int = USERINFO_CACHE_MAX_ENTRIES):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: dict[str, Any]) -> None:
        now = time.monotonic()
        with self._lock:
            if len(self._entries) >= self.max_entries:
                self._evict(now)
            self._entries[key] = (now + self.ttl_seconds, value)

    def _evict(self, now: float) -> None:
        # Drop expired entries first, then the oldest insertions.
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        while len(self._entries) >= self.max_entries:
            del self._entries[next(iter(self._entries))]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class Auth0JwksVerifier:
    """Production token verifier using the Auth0 JWKS.

    Validates:
    - Signature via JWKS (RS256)
    - exp with ±60s clock skew
    - iss matches https://{domain}/
    - aud is the UI client id, the management API, or a configured extra

    Tokens issued for the management API may not carry an email claim; in
    that case the email is looked up once at /userinfo and cached.
    """

    def __init__(
        self,
        jwks_url: str,
        issuer: str,
        client_id: str,
        management_audience: str,
        userinfo_url: str,
        extra_audiences: list[str] | None = None,
        userinfo_cache_ttl: int = 900,
        cache_ttl: int = 3600,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the Auth0 JWKS verifier.

        Args:
            jwks_url: Full URL to the JWKS endpoint.
            issuer: Expected issuer, including the trailing slash.
            client_id: Audience carried by tokens issued to the UI.
            management_audience: Audience carried by management API tokens.
            userinfo_url: Endpoint returning the email for management tokens.
            extra_audiences: Additional accepted audience values.
            userinfo_cache_ttl: How long userinfo results are cached in seconds.
            cache_ttl: How long to cache JWKS keys in seconds.
            http_client: Optional httpx client used for userinfo lookups.
        """
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.client_id = client_id
        self.management_audience = management_audience
        self.userinfo_url = userinfo_url
        self.extra_audiences = list(extra_audiences or [])
        self.cache_ttl = cache_ttl
        self.userinfo_cache = UserInfoCache(userinfo_cache_ttl)
        self._http_client = http_client

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    @property
    def audiences(self) -> list[str]:
        return [self.client_id, self.management_audience, *self.extra_audiences]

    def _get_jwks_client(self) -> PyJWKClient:
        """Get or create the JWKS client with lazy initialization."""
        with self._jwks_lock:
            if self._jwks_client is None:
                self._jwks_client = PyJWKClient(
                    self.jwks_url,
                    cache_keys=True,
                    lifespan=self.cache_ttl,
                )
            return self._jwks_client

    def _refresh_jwks(self) -> None:
        """Force refresh of JWKS keys (called on kid miss)."""
        with self._jwks_lock:
            self._jwks_client = PyJWKClient(
                self.jwks_url,
                cache_keys=True,
                lifespan=self.cache_ttl,
            )

    def verify(self, token: str) -> VerifiedIdentity:
        """Verify an Auth0 token and resolve the caller's email.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token invalid or provider unreachable.
        """
        try:
            signing_key = self._get_signing_key(token)
        except PyJWKClientConnectionError as e:
            logger.warning("auth_failure", extra={"reason": "jwks_unavailable", "error": str(e)})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, UNAVAILABLE_MESSAGE) from e
        except (PyJWKClientError, DecodeError) as e:
            logger.warning("auth_failure", extra={"reason": "signing_key", "error": str(e)})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, INVALID_MESSAGE) from e

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.audiences,
                issuer=self.issuer,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "sub", "aud"]},
            )
        except ExpiredSignatureError as e:
            logger.warning("auth_failure", extra={"reason": "expired_token"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, EXPIRED_MESSAGE) from e
        except InvalidAudienceError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_audience"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token audience") from e
        except (InvalidSignatureError, InvalidIssuerError, DecodeError) as e:
            logger.warning("auth_failure", extra={"reason": type(e).__name__})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, INVALID_MESSAGE) from e
        except InvalidTokenError as e:
            logger.warning("auth_failure", extra={"reason": "invalid_token", "error": str(e)})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, INVALID_MESSAGE) from e

        sub = payload.get("sub")
        if not sub or not isinstance(sub, str):
            logger.warning("auth_failure", extra={"reason": "missing_sub"})
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, INVALID_MESSAGE)

        email = self._resolve_email(token, payload)

        return VerifiedIdentity(
            sub=sub,
            email=email,
            email_verified=bool(payload.get("email_verified", False)),
            name=payload.get("name"),
            username=payload.get("preferred_username") or payload.get("nickname"),
        )

    def _resolve_email(self, token: str, payload: dict[str, Any]) -> str | None:
        """Pick the email source based on the token's audience.

        UI tokens (client id or an extra audience) carry the email claim.
        Management API tokens may not, so fall back to /userinfo.
        """
        aud = payload.get("aud")
        audiences = aud if isinstance(aud, list) else [aud]

        if self.client_id in audiences or any(a in audiences for a in self.extra_audiences):
            return payload.get("email")

        if self.management_audience in audiences:
            if payload.get("email"):
                return payload["email"]
            return self._fetch_userinfo_email(token)

        logger.warning("auth_failure", extra={"reason": "unrecognized_audience"})
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token audience")

    def _fetch_userinfo_email(self, token: str) -> str | None:
        cached = self.userinfo_cache.get(token)
        if cached is not None:
            return cached.get("email")

        try:
            if self._http_client is not None:
                response = self._http_client.get(
                    self.userinfo_url, headers={"Authorization": f"Bearer {token}"}
                )
            else:
                response = httpx.get(
                    self.userinfo_url,
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=USERINFO_TIMEOUT_S,
                )
            response.raise_for_status()
            email = response.json().get("email")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "auth_failure", extra={"reason": "userinfo_unavailable", "error": str(e)}
            )
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, UNAVAILABLE_MESSAGE) from e

        self.userinfo_cache.set(token, {"email": email})
        return email

    def _get_signing_key(self, token: str) -> Any:
        """Get the signing key for the token, refreshing once on kid miss.

        Raises:
            PyJWKClientConnectionError: If the JWKS endpoint is unreachable.
            PyJWKClientError: If the kid is still unknown after refresh.
        """
        client = self._get_jwks_client()

        try:
            return client.get_signing_key_from_jwt(token)
        except PyJWKClientConnectionError:
            raise
        except PyJWKClientError as e:
            if "Unable to find" in str(e) or "kid" in str(e).lower():
                logger.info("Refreshing JWKS due to kid miss")
                self._refresh_jwks()
                return self._get_jwks_client().get_signing_key_from_jwt(token)
            raise
