"""Authentication middleware for FastAPI.

Provides:
- Viewer: The authenticated caller attached to request state
- AuthMiddleware: Global middleware for bearer token verification
- get_viewer: Dependency for accessing the authenticated viewer
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from betareader.auth.verifier import TokenVerifier, VerifiedIdentity
from betareader.errors import ApiError, ApiErrorCode
from betareader.responses import error_response

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


@dataclass(frozen=True)
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: Internal users.id of the caller.
        sub: Identity provider subject.
        email: Email resolved during verification, if any.
        email_verified: Whether the provider verified the email.
        username: Stored username, if the user has one.
    """

    user_id: int
    sub: str
    email: str | None = None
    email_verified: bool = False
    username: str | None = None


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract and parse bearer token
    3. Verify token via TokenVerifier
    4. Resolve (or create) the user row via callback
    5. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        resolve_user: Callable[[VerifiedIdentity], Viewer] | None = None,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            verifier: TokenVerifier implementation for JWT verification.
            resolve_user: Function(identity) -> Viewer. Looks up the user by
                subject and creates it on first sight.
        """
        super().__init__(app)
        self.verifier = verifier
        self.resolve_user = resolve_user

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token, error_response_obj = self._extract_bearer_token(request)
        if error_response_obj:
            return error_response_obj

        # Verification may hit the JWKS or userinfo endpoints; keep it off the loop.
        try:
            identity = await run_in_threadpool(self.verifier.verify, token)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)

        if self.resolve_user:
            try:
                viewer = await run_in_threadpool(self.resolve_user, identity)
            except Exception:
                logger.exception("user_resolution_failed", extra={"sub": identity.sub})
                return self._error_json_response(
                    ApiErrorCode.E_INTERNAL,
                    "Internal error",
                    500,
                )
        else:
            # No resolver configured (isolated middleware tests)
            viewer = Viewer(
                user_id=0,
                sub=identity.sub,
                email=identity.email,
                email_verified=identity.email_verified,
                username=identity.username,
            )

        request.state.viewer = viewer
        request.state.identity = identity

        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> tuple[str, JSONResponse | None]:
        """Extract bearer token from Authorization header.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_header", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Authentication required",
                401,
            )

        if not auth_header.lower().startswith("bearer "):
            logger.warning(
                "auth_failure",
                extra={"reason": "invalid_header_format", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        token = auth_header[7:].strip()
        if not token:
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        return token, None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer


def get_identity(request: Request) -> VerifiedIdentity:
    """FastAPI dependency exposing the raw verified token identity."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return identity


# Type alias for dependency injection
ViewerDep = Depends(get_viewer)
