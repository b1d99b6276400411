"""Integration tests for the authentication middleware and profile routes.

Tests the full auth flow including:
- Bearer token validation and the 401 envelope
- Lazy user creation on first authenticated request
- GET /auth/me and POST /auth/profile
"""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from betareader.app import create_app
from betareader.auth.middleware import AuthMiddleware
from betareader.auth.verifier import EXPIRED_MESSAGE
from betareader.db.models import User
from tests.helpers import (
    auth_headers,
    create_test_sub,
    mint_expired_token,
    mint_test_token,
)
from tests.support.test_verifier import MockJwtVerifier


def _other_private_key() -> bytes:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


class TestAuthBoundary:
    """Unauthenticated requests are rejected before reaching any route."""

    def test_no_authorization_header(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 401
        data = response.json()
        assert data["error"]["code"] == "E_UNAUTHENTICATED"
        assert "authentication" in data["error"]["message"].lower()

    def test_wrong_authorization_format(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Basic abc123"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_empty_bearer_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer "})

        assert response.status_code == 401

    def test_bad_signature(self, client):
        token = mint_test_token(create_test_sub(), private_key=_other_private_key())

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_expired_token(self, client):
        token = mint_expired_token(create_test_sub())

        response = client.get("/books", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == EXPIRED_MESSAGE

    @pytest.mark.parametrize(
        "claims",
        [{"issuer": "someone-else"}, {"audience": "another-app"}],
    )
    def test_wrong_issuer_or_audience(self, client, claims):
        token = mint_test_token(create_test_sub(), **claims)

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_health_is_public(self, client):
        response = client.get("/health")

        assert response.status_code == 200


class TestUserResolution:
    def test_first_request_creates_user_once(self, client, session_factory):
        sub = create_test_sub()
        headers = auth_headers(sub, email="new@example.com")

        first = client.get("/auth/me", headers=headers).json()["data"]
        second = client.get("/auth/me", headers=headers).json()["data"]

        assert first["id"] == second["id"]
        assert first["auth0_sub"] == sub
        assert first["email"] == "new@example.com"
        db = session_factory()
        try:
            count = db.scalar(select(func.count(User.id)).where(User.auth0_sub == sub))
        finally:
            db.close()
        assert count == 1

    def test_resolver_failure_returns_500(self, session_factory, llm):
        def broken_resolver(identity):
            raise RuntimeError("database down")

        app = create_app(
            skip_auth_middleware=True, session_factory=session_factory, llm_client=llm
        )
        app.add_middleware(
            AuthMiddleware, verifier=MockJwtVerifier(), resolve_user=broken_resolver
        )

        with TestClient(app) as client:
            response = client.get("/auth/me", headers=auth_headers(create_test_sub()))

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_INTERNAL"


class TestProfileRoutes:
    def test_profile_upsert_uses_token_claims(self, client):
        sub = create_test_sub()
        headers = auth_headers(
            sub, email="ann@example.com", email_verified=True, name="Ann", nickname="ann"
        )

        response = client.post("/auth/profile", headers=headers)

        assert response.status_code == 200
        user = response.json()["data"]
        assert user["email"] == "ann@example.com"
        assert user["email_verified"] is True
        assert user["name"] == "Ann"
        assert user["username"] == "ann"

    def test_body_overrides_claims(self, client):
        headers = auth_headers(create_test_sub(), name="Ann", nickname="ann")

        response = client.post(
            "/auth/profile", json={"username": "annie", "name": "Ann B."}, headers=headers
        )

        user = response.json()["data"]
        assert user["username"] == "annie"
        assert user["name"] == "Ann B."

        me = client.get("/auth/me", headers=headers).json()["data"]
        assert me["username"] == "annie"

    def test_profile_refresh_keeps_the_same_user(self, client):
        sub = create_test_sub()
        first = client.post(
            "/auth/profile", headers=auth_headers(sub, email="old@example.com")
        ).json()["data"]

        second = client.post(
            "/auth/profile", headers=auth_headers(sub, email="new@example.com")
        ).json()["data"]

        assert second["id"] == first["id"]
        assert second["email"] == "new@example.com"
