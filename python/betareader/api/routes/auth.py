"""Caller profile routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from betareader.api.deps import get_db
from betareader.auth.middleware import Viewer, get_identity, get_viewer
from betareader.auth.verifier import VerifiedIdentity
from betareader.responses import success_response
from betareader.schemas.users import UpdateProfileRequest
from betareader.services import users as users_service

router = APIRouter()


@router.post("/auth/profile")
def upsert_profile(
    identity: Annotated[VerifiedIdentity, Depends(get_identity)],
    db: Annotated[Session, Depends(get_db)],
    body: UpdateProfileRequest | None = None,
) -> dict:
    """Create or refresh the caller's profile from token claims.

    Optional username and name in the body override the claims.
    """
    result = users_service.upsert_profile(db, identity, body or UpdateProfileRequest())
    return success_response(result.model_dump(mode="json"))


@router.get("/auth/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = users_service.get_me(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))
