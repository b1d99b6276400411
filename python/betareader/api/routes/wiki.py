"""Wiki routes.

Pages are listed and created under their book; everything else addresses a
page by id.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from betareader.api.deps import get_db
from betareader.auth.middleware import Viewer, get_viewer
from betareader.responses import success_response
from betareader.schemas.wiki import (
    CreateWikiPageRequest,
    FindReplaceRequest,
    UpdateWikiPageRequest,
)
from betareader.services import wiki as wiki_service

router = APIRouter()


# =============================================================================
# Book-scoped routes
# =============================================================================


@router.get("/books/{book_id}/wiki")
def list_pages(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List a book's wiki pages, major pages first."""
    result = wiki_service.list_pages(db, viewer.user_id, book_id)
    return success_response([p.model_dump(mode="json") for p in result])


@router.post("/books/{book_id}/wiki", status_code=201)
def create_page(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: CreateWikiPageRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = wiki_service.create_page(db, viewer.user_id, book_id, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/books/{book_id}/characters")
def list_characters(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Character roster built from chapter summaries."""
    result = wiki_service.list_characters(db, viewer.user_id, book_id)
    return success_response([c.model_dump(mode="json") for c in result])


# =============================================================================
# Page routes
# =============================================================================


@router.get("/wiki/{page_id}")
def get_page(
    page_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = wiki_service.get_page(db, viewer.user_id, page_id)
    return success_response(result.model_dump(mode="json"))


@router.patch("/wiki/{page_id}")
def update_page(
    page_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: UpdateWikiPageRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Partially update a page. Content changes are logged as manual edits."""
    result = wiki_service.update_page(db, viewer.user_id, page_id, body)
    return success_response(result.model_dump(mode="json"))


@router.delete("/wiki/{page_id}", status_code=204)
def delete_page(
    page_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    wiki_service.delete_page(db, viewer.user_id, page_id)
    return Response(status_code=204)


@router.get("/wiki/{page_id}/history")
def get_history(
    page_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Audit log for a page, newest first."""
    result = wiki_service.get_history(db, viewer.user_id, page_id)
    return success_response([u.model_dump(mode="json") for u in result])


@router.get("/wiki/{page_id}/mentions")
def list_mentions(
    page_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = wiki_service.list_page_mentions(db, viewer.user_id, page_id)
    return success_response([m.model_dump(mode="json") for m in result])


@router.post("/wiki/{page_id}/replace")
def find_and_replace(
    page_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: FindReplaceRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Case-insensitive literal find-and-replace across selected fields."""
    result = wiki_service.find_and_replace(db, viewer.user_id, page_id, body)
    return success_response(result.model_dump(mode="json"))
