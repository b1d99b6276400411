"""Review routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from betareader.api.deps import get_db, get_llm_client
from betareader.auth.middleware import Viewer, get_viewer
from betareader.responses import success_response
from betareader.schemas.reviews import CreateReviewRequest
from betareader.services import reviews as reviews_service
from betareader.services.llm import LLMClient

router = APIRouter()


@router.post("/reviews")
async def generate_review(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: CreateReviewRequest,
    db: Annotated[Session, Depends(get_db)],
    llm: Annotated[LLMClient, Depends(get_llm_client)],
) -> dict:
    """Generate a review by tone or custom profile.

    Regenerating with the same profile replaces the stored review.
    """
    result = await reviews_service.generate_review(db, llm, viewer.user_id, body)
    return success_response(result.model_dump(mode="json"))


@router.delete("/reviews/{review_id}", status_code=204)
def delete_review(
    review_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    reviews_service.delete_review(db, viewer.user_id, review_id)
    return Response(status_code=204)
