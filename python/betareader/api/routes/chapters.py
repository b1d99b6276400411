"""Chapter routes.

The summary route is async: it awaits the language model. Everything else
is plain CRUD and runs in the threadpool.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from betareader.api.deps import get_db, get_llm_client
from betareader.auth.middleware import Viewer, get_viewer
from betareader.responses import success_response
from betareader.schemas.chapters import UpsertChapterRequest
from betareader.schemas.ordering import MoveChapterRequest
from betareader.services import chapters as chapters_service
from betareader.services import ordering as ordering_service
from betareader.services import reviews as reviews_service
from betareader.services import summaries as summaries_service
from betareader.services.llm import LLMClient

router = APIRouter()


@router.post("/chapters")
def upsert_chapter(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: UpsertChapterRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create or replace a chapter; new chapters go to the end of the book."""
    result = chapters_service.upsert_chapter(db, viewer.user_id, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/chapters/{chapter_id}")
def get_chapter(
    chapter_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = chapters_service.get_chapter(db, viewer.user_id, chapter_id)
    return success_response(result.model_dump(mode="json"))


@router.delete("/chapters/{chapter_id}", status_code=204)
def delete_chapter(
    chapter_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    chapters_service.delete_chapter(db, viewer.user_id, chapter_id)
    return Response(status_code=204)


@router.put("/chapters/{chapter_id}/position")
def move_chapter(
    chapter_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: MoveChapterRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Move a chapter between parts and/or within the book order.

    Send part_id (null to unassign) to change parts; omit it to keep the part.
    """
    result = ordering_service.move_chapter(db, viewer.user_id, chapter_id, body)
    return success_response(result.model_dump(mode="json"))


@router.post("/chapters/{chapter_id}/summary")
async def generate_summary(
    chapter_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    llm: Annotated[LLMClient, Depends(get_llm_client)],
) -> dict:
    """Summarize a chapter with the language model and update the wiki."""
    result = await summaries_service.generate_summary(db, llm, viewer.user_id, chapter_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/chapters/{chapter_id}/reviews")
def list_reviews(
    chapter_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = reviews_service.list_reviews(db, viewer.user_id, chapter_id)
    return success_response([r.model_dump(mode="json") for r in result])
