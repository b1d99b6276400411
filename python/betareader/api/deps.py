"""FastAPI dependencies for route handlers.

Common dependencies like database sessions and the shared LLM client.
"""

from fastapi import Request

from betareader.db.session import get_db, get_session_factory
from betareader.services.llm import LLMClient

__all__ = ["get_db", "get_llm_client", "get_session_factory"]


def get_llm_client(request: Request) -> LLMClient:
    """Get the shared LLM client from app state.

    The client is created at startup around one pooled httpx.AsyncClient and
    closed at shutdown.
    """
    return request.app.state.llm_client
