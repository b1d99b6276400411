"""Authentication and authorization module.

This module provides:
- Token verification (Auth0 JWKS verifier)
- Auth middleware for FastAPI
- Ownership checks for book-scoped resources

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

from betareader.auth.middleware import AuthMiddleware, Viewer, get_viewer
from betareader.auth.verifier import Auth0JwksVerifier, TokenVerifier, VerifiedIdentity

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "Auth0JwksVerifier",
    "TokenVerifier",
    "VerifiedIdentity",
]
