"""Unit tests for the Auth0 token verifier.

JWKS lookups are replaced with a mocked PyJWKClient; the userinfo endpoint
is mocked with respx.
"""

import time
from unittest.mock import MagicMock

import httpx
import jwt
import pytest
import respx
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.exceptions import PyJWKClientConnectionError, PyJWKClientError

from betareader.auth.verifier import (
    EXPIRED_MESSAGE,
    UNAVAILABLE_MESSAGE,
    Auth0JwksVerifier,
    UserInfoCache,
)
from betareader.errors import ApiError, ApiErrorCode

DOMAIN = "tenant.eu.auth0.com"
ISSUER = f"https://{DOMAIN}/"
CLIENT_ID = "ui-client-id"
MANAGEMENT_AUDIENCE = f"https://{DOMAIN}/api/v2/"
USERINFO_URL = f"https://{DOMAIN}/userinfo"


@pytest.fixture(scope="module")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def verifier(private_key, monkeypatch) -> Auth0JwksVerifier:
    """Verifier whose JWKS client always returns the test public key."""
    verifier = Auth0JwksVerifier(
        jwks_url=f"https://{DOMAIN}/.well-known/jwks.json",
        issuer=ISSUER,
        client_id=CLIENT_ID,
        management_audience=MANAGEMENT_AUDIENCE,
        userinfo_url=USERINFO_URL,
        extra_audiences=["https://api.betareader.test"],
    )
    jwks_client = MagicMock()
    jwks_client.get_signing_key_from_jwt.return_value = MagicMock(key=private_key.public_key())
    monkeypatch.setattr(verifier, "_get_jwks_client", lambda: jwks_client)
    return verifier


def mint(private_key, sub: str = "auth0|abc", **overrides) -> str:
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": CLIENT_ID,
        "iat": now,
        "exp": now + 3600,
        **overrides,
    }
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": "key-1"})


class TestAudienceRouting:
    def test_ui_token_uses_email_claim(self, verifier, private_key):
        token = mint(
            private_key, email="ann@example.com", email_verified=True, name="Ann", nickname="ann"
        )

        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(USERINFO_URL)
            identity = verifier.verify(token)

        assert identity.sub == "auth0|abc"
        assert identity.email == "ann@example.com"
        assert identity.email_verified is True
        assert identity.name == "Ann"
        assert identity.username == "ann"
        assert not route.called

    def test_extra_audience_is_accepted(self, verifier, private_key):
        token = mint(private_key, aud="https://api.betareader.test", email="a@example.com")

        assert verifier.verify(token).email == "a@example.com"

    def test_management_token_looks_up_userinfo_once(self, verifier, private_key):
        token = mint(private_key, aud=[MANAGEMENT_AUDIENCE, f"https://{DOMAIN}/userinfo"])

        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(USERINFO_URL).mock(
                return_value=httpx.Response(200, json={"email": "m2m@example.com"})
            )
            first = verifier.verify(token)
            second = verifier.verify(token)

        assert first.email == second.email == "m2m@example.com"
        assert route.call_count == 1
        assert route.calls[0].request.headers["Authorization"] == f"Bearer {token}"

    def test_management_token_with_email_skips_userinfo(self, verifier, private_key):
        token = mint(private_key, aud=MANAGEMENT_AUDIENCE, email="claim@example.com")

        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(USERINFO_URL)
            identity = verifier.verify(token)

        assert identity.email == "claim@example.com"
        assert not route.called

    def test_userinfo_failure_is_unauthenticated(self, verifier, private_key):
        token = mint(private_key, aud=MANAGEMENT_AUDIENCE)

        with respx.mock(assert_all_called=False) as respx_mock:
            respx_mock.get(USERINFO_URL).mock(return_value=httpx.Response(503))
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED
        assert exc_info.value.message == UNAVAILABLE_MESSAGE

    def test_unreachable_userinfo_is_unauthenticated(self, verifier, private_key):
        token = mint(private_key, aud=MANAGEMENT_AUDIENCE)

        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(USERINFO_URL).mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert route.called
        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED
        assert exc_info.value.message == UNAVAILABLE_MESSAGE
        assert verifier.userinfo_cache.get(token) is None


class TestTokenValidation:
    def test_unknown_audience(self, verifier, private_key):
        with pytest.raises(ApiError) as exc_info:
            verifier.verify(mint(private_key, aud="someone-else"))

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED

    def test_wrong_issuer(self, verifier, private_key):
        with pytest.raises(ApiError):
            verifier.verify(mint(private_key, iss="https://evil.example.com/"))

    def test_expired(self, verifier, private_key):
        token = mint(private_key, exp=int(time.time()) - 3600)

        with pytest.raises(ApiError) as exc_info:
            verifier.verify(token)

        assert exc_info.value.message == EXPIRED_MESSAGE

    def test_clock_skew_accepted(self, verifier, private_key):
        token = mint(private_key, exp=int(time.time()) - 30)

        assert verifier.verify(token).sub == "auth0|abc"

    def test_bad_signature(self, verifier):
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

        with pytest.raises(ApiError):
            verifier.verify(mint(other_key))

    def test_missing_sub(self, verifier, private_key):
        now = int(time.time())
        token = jwt.encode(
            {"iss": ISSUER, "aud": CLIENT_ID, "exp": now + 60},
            private_key,
            algorithm="RS256",
        )

        with pytest.raises(ApiError):
            verifier.verify(token)


class TestJwks:
    @pytest.fixture
    def bare_verifier(self) -> Auth0JwksVerifier:
        return Auth0JwksVerifier(
            jwks_url=f"https://{DOMAIN}/.well-known/jwks.json",
            issuer=ISSUER,
            client_id=CLIENT_ID,
            management_audience=MANAGEMENT_AUDIENCE,
            userinfo_url=USERINFO_URL,
        )

    def test_jwks_unreachable(self, bare_verifier, private_key, monkeypatch):
        jwks_client = MagicMock()
        jwks_client.get_signing_key_from_jwt.side_effect = PyJWKClientConnectionError("down")
        monkeypatch.setattr(bare_verifier, "_get_jwks_client", lambda: jwks_client)

        with pytest.raises(ApiError) as exc_info:
            bare_verifier.verify(mint(private_key))

        assert exc_info.value.message == UNAVAILABLE_MESSAGE

    def test_kid_miss_refreshes_once(self, bare_verifier, private_key, monkeypatch):
        stale = MagicMock()
        stale.get_signing_key_from_jwt.side_effect = PyJWKClientError(
            'Unable to find a signing key that matches: "key-1"'
        )
        fresh = MagicMock()
        fresh.get_signing_key_from_jwt.return_value = MagicMock(key=private_key.public_key())
        clients = iter([stale, fresh])
        refresh = MagicMock()
        monkeypatch.setattr(bare_verifier, "_get_jwks_client", lambda: next(clients))
        monkeypatch.setattr(bare_verifier, "_refresh_jwks", refresh)

        identity = bare_verifier.verify(mint(private_key))

        assert identity.sub == "auth0|abc"
        refresh.assert_called_once()


class TestUserInfoCache:
    def test_expired_entries_are_dropped(self):
        cache = UserInfoCache(ttl_seconds=0)
        cache.set("token", {"email": "a@example.com"})

        assert cache.get("token") is None
        assert len(cache) == 0

    def test_bounded_size_evicts_oldest(self):
        cache = UserInfoCache(ttl_seconds=60, max_entries=2)
        for key in ("a", "b", "c"):
            cache.set(key, {"email": f"{key}@example.com"})

        assert len(cache) == 2
        assert cache.get("a") is None
        assert cache.get("c") == {"email": "c@example.com"}
