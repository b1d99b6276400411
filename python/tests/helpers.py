"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication
- Header generation for test requests
- User creation helpers
"""

import time
from uuid import uuid4

import jwt
from sqlalchemy.orm import Session

from betareader.auth.verifier import VerifiedIdentity
from betareader.services.users import resolve_user
from tests.support.test_verifier import MockJwtVerifier

# Default test token settings
DEFAULT_ISSUER = "test-issuer"
DEFAULT_AUDIENCE = "test-audience"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def create_test_sub() -> str:
    """A fresh identity-provider subject, shaped like an Auth0 one."""
    return f"auth0|{uuid4().hex}"


def mint_test_token(
    sub: str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
    private_key: bytes | None = None,
    **extra_claims,
) -> str:
    """Mint a signed RS256 test JWT.

    Args:
        sub: The `sub` claim.
        expires_in: Token validity in seconds from now (negative for expired).
        issuer: The `iss` claim value.
        audience: The `aud` claim value.
        private_key: Signing key; defaults to the MockJwtVerifier key.
        **extra_claims: Additional claims (email, name, ...).
    """
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": issuer,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    key = private_key or MockJwtVerifier.get_private_key()
    return jwt.encode(payload, key, algorithm="RS256")


def mint_expired_token(sub: str) -> str:
    """Mint a token that expired 1 hour ago."""
    return mint_test_token(sub, expires_in=-3600)


def auth_headers(sub: str, **extra_claims) -> dict[str, str]:
    """Authorization header for a valid test token."""
    return {"Authorization": f"Bearer {mint_test_token(sub, **extra_claims)}"}


def make_user(db: Session, sub: str | None = None, **claims) -> int:
    """Create (or fetch) a user directly through the service and return its id."""
    user = resolve_user(db, VerifiedIdentity(sub=sub or create_test_sub(), **claims))
    return user.id
