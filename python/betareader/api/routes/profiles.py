"""Reviewer profile routes (AI profiles and custom personas)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from betareader.api.deps import get_db
from betareader.auth.middleware import Viewer, get_viewer
from betareader.responses import success_response
from betareader.schemas.profiles import (
    CreateAIProfileRequest,
    CreateCustomProfileRequest,
    UpdateCustomProfileRequest,
)
from betareader.services import profiles as profiles_service

router = APIRouter()


# =============================================================================
# AI profiles
# =============================================================================


@router.get("/ai-profiles")
def list_ai_profiles(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the built-in system profiles and the viewer's own."""
    result = profiles_service.list_ai_profiles(db, viewer.user_id)
    return success_response([p.model_dump(mode="json") for p in result])


@router.post("/ai-profiles", status_code=201)
def create_ai_profile(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: CreateAIProfileRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = profiles_service.create_ai_profile(db, viewer.user_id, body)
    return success_response(result.model_dump(mode="json"))


@router.delete("/ai-profiles/{profile_id}", status_code=204)
def delete_ai_profile(
    profile_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete one of the viewer's AI profiles. System profiles return 403."""
    profiles_service.delete_ai_profile(db, viewer.user_id, profile_id)
    return Response(status_code=204)


# =============================================================================
# Custom reviewer profiles
# =============================================================================


@router.get("/custom-profiles")
def list_custom_profiles(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = profiles_service.list_custom_profiles(db, viewer.user_id)
    return success_response([p.model_dump(mode="json") for p in result])


@router.post("/custom-profiles", status_code=201)
def create_custom_profile(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: CreateCustomProfileRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = profiles_service.create_custom_profile(db, viewer.user_id, body)
    return success_response(result.model_dump(mode="json"))


@router.patch("/custom-profiles/{profile_id}")
def update_custom_profile(
    profile_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: UpdateCustomProfileRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = profiles_service.update_custom_profile(db, viewer.user_id, profile_id, body)
    return success_response(result.model_dump(mode="json"))


@router.delete("/custom-profiles/{profile_id}", status_code=204)
def delete_custom_profile(
    profile_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a custom profile together with the reviews written in its voice."""
    profiles_service.delete_custom_profile(db, viewer.user_id, profile_id)
    return Response(status_code=204)
