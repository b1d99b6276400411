"""Book part routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from betareader.api.deps import get_db
from betareader.auth.middleware import Viewer, get_viewer
from betareader.responses import success_response
from betareader.schemas.ordering import CreatePartRequest, RenamePartRequest
from betareader.services import parts as parts_service

router = APIRouter()


@router.get("/books/{book_id}/parts")
def list_parts(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = parts_service.list_parts(db, viewer.user_id, book_id)
    return success_response([p.model_dump(mode="json") for p in result])


@router.post("/books/{book_id}/parts", status_code=201)
def create_part(
    book_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: CreatePartRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = parts_service.create_part(db, viewer.user_id, book_id, body)
    return success_response(result.model_dump(mode="json"))


@router.patch("/parts/{part_id}")
def rename_part(
    part_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: RenamePartRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = parts_service.rename_part(db, viewer.user_id, part_id, body)
    return success_response(result.model_dump(mode="json"))


@router.delete("/parts/{part_id}", status_code=204)
def delete_part(
    part_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a part. Its chapters stay in the book, unassigned."""
    parts_service.delete_part(db, viewer.user_id, part_id)
    return Response(status_code=204)
