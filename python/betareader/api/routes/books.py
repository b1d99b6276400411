"""Book routes.

Routes are transport-only:
- Extract the viewer from request.state
- Call exactly one service function
- Return success(...) or raise ApiError

No domain logic or raw DB access in routes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from betareader.api.deps import get_db
from betareader.auth.middleware import Viewer, get_viewer
from betareader.responses import success_response
from betareader.schemas.books import UpsertBookRequest
from betareader.schemas.ordering import ReorderChaptersRequest
from betareader.services import books as books_service
from betareader.services import chapters as chapters_service
from betareader.services import ordering as ordering_service

router = APIRouter()


@router.post("/books")
def upsert_book(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: UpsertBookRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a book or rename one the viewer owns.

    Returns 403 if the id belongs to another user's book.
    """
    result = books_service.upsert_book(db, viewer.user_id, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/books")
def list_books(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the viewer's books, most recently updated first, with chapter stats."""
    result = books_service.list_books(db, viewer.user_id)
    return success_response([b.model_dump(mode="json") for b in result])


@router.get("/books/{book_id}")
def get_book(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = books_service.get_book(db, viewer.user_id, book_id)
    return success_response(result.model_dump(mode="json"))


@router.delete("/books/{book_id}", status_code=204)
def delete_book(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a book and everything in it."""
    books_service.delete_book(db, viewer.user_id, book_id)
    return Response(status_code=204)


@router.get("/books/{book_id}/chapters")
def list_chapters(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List chapters in book order, without their text."""
    result = chapters_service.list_chapters(db, viewer.user_id, book_id)
    return success_response([c.model_dump(mode="json") for c in result])


@router.put("/books/{book_id}/chapter-order")
def reorder_chapters(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: ReorderChaptersRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Replace the book order and, optionally, part orders.

    chapter_order must list every chapter of the book exactly once.
    """
    result = ordering_service.reorder_book(db, viewer.user_id, book_id, body)
    return success_response(result.model_dump(mode="json"))
