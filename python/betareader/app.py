"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AuthMiddleware (verifies the token, resolves the user, sets viewer)
3. Route handler
4. AuthMiddleware (returns response)
5. RequestIDMiddleware (logs, sets response header)

LLM Client Lifecycle:
- httpx.AsyncClient is created at startup, stored in app.state
- LLMClient wraps the shared client for connection pooling
- Client is closed gracefully at shutdown
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from betareader.api.routes import create_api_router
from betareader.auth.middleware import AuthMiddleware, Viewer
from betareader.auth.verifier import Auth0JwksVerifier, TokenVerifier, VerifiedIdentity
from betareader.config import get_settings
from betareader.db.session import get_session_factory
from betareader.errors import ApiError
from betareader.logging import configure_logging, get_logger
from betareader.middleware.request_id import RequestIDMiddleware
from betareader.responses import (
    api_error_handler,
    http_exception_handler,
    llm_error_handler,
    unhandled_exception_handler,
    validation_error_handler,
)
from betareader.services.llm import LLMClient, LLMError
from betareader.services.profiles import seed_system_profiles
from betareader.services.users import resolve_user, viewer_for_user

logger = get_logger(__name__)


def create_user_resolver(session_factory: sessionmaker[Session]):
    """Create the callback the auth middleware uses to map an identity to a Viewer.

    Each call opens its own session, so user creation commits independently
    of the request's session.
    """

    def resolve(identity: VerifiedIdentity) -> Viewer:
        db = session_factory()
        try:
            user = resolve_user(db, identity)
            return viewer_for_user(user, identity)
        finally:
            db.close()

    return resolve


def create_token_verifier() -> Auth0JwksVerifier:
    """Create the Auth0 token verifier from settings."""
    settings = get_settings()

    return Auth0JwksVerifier(
        jwks_url=settings.jwks_url,
        issuer=settings.issuer,
        client_id=settings.auth0_client_id,  # type: ignore
        management_audience=settings.management_audience,
        userinfo_url=settings.userinfo_url,
        extra_audiences=settings.extra_audience_list,
        userinfo_cache_ttl=settings.userinfo_cache_ttl_s,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle resources.

    - Seeds the built-in reviewer profiles (idempotent)
    - Creates the shared httpx.AsyncClient and LLMClient unless one was injected
    - Closes the HTTP client on shutdown
    """
    settings = get_settings()

    db = app.state.session_factory()
    try:
        seed_system_profiles(db)
    finally:
        db.close()

    owns_client = getattr(app.state, "llm_client", None) is None
    if owns_client:
        app.state.httpx_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.llm_timeout_s, connect=10.0),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        )
        app.state.llm_client = LLMClient(
            app.state.httpx_client,
            api_key=settings.openai_api_key,  # type: ignore
            model_name=settings.openai_model,
            timeout_s=settings.llm_timeout_s,
            base_url=settings.openai_base_url,
        )
        logger.info("llm_client_initialized", model_name=settings.openai_model)

    yield

    if owns_client:
        await app.state.httpx_client.aclose()
        logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    session_factory: sessionmaker[Session] | None = None,
    llm_client: LLMClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        session_factory: Session factory for user resolution and seeding.
            Defaults to the engine built from DATABASE_URL.
        llm_client: Optional pre-built LLM client (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(json_format=settings.log_format != "console")

    app = FastAPI(
        title="Beta Reader API",
        description="Backend API for AI beta reading: books, chapters, reviews and wiki",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory or get_session_factory()
    if llm_client is not None:
        app.state.llm_client = llm_client

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(create_api_router())

    # Add auth middleware (runs on all requests except public paths)
    if not skip_auth_middleware:
        verifier = token_verifier or create_token_verifier()
        app.add_middleware(
            AuthMiddleware,
            verifier=verifier,
            resolve_user=create_user_resolver(app.state.session_factory),
        )
        logger.info("auth_middleware_enabled", env=settings.beta_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
