"""Book part service.

Deleting a part detaches its chapters (part_id becomes NULL) and drops the
part's order; the book order is left as it was.
"""

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from betareader.auth.permissions import get_book_for_owner, get_part_for_owner
from betareader.db.models import BookPart, Chapter
from betareader.db.session import transaction
from betareader.logging import get_logger
from betareader.schemas.ordering import CreatePartRequest, PartOut, RenamePartRequest

logger = get_logger(__name__)


def list_parts(db: Session, viewer_id: int, book_id: str) -> list[PartOut]:
    book = get_book_for_owner(db, viewer_id, book_id)
    parts = db.scalars(
        select(BookPart).where(BookPart.book_id == book.id).order_by(BookPart.id.asc())
    ).all()
    return [PartOut.model_validate(p) for p in parts]


def create_part(db: Session, viewer_id: int, book_id: str, req: CreatePartRequest) -> PartOut:
    """Create an empty part in a book the viewer owns."""
    with transaction(db):
        book = get_book_for_owner(db, viewer_id, book_id)
        part = BookPart(book_id=book.id, name=req.name, chapter_order=[])
        db.add(part)
        db.flush()

    db.refresh(part)
    logger.info("part_created", book_id=book.id, part_id=part.id)
    return PartOut.model_validate(part)


def rename_part(db: Session, viewer_id: int, part_id: int, req: RenamePartRequest) -> PartOut:
    with transaction(db):
        part, _ = get_part_for_owner(db, viewer_id, part_id)
        part.name = req.name
        db.flush()

    db.refresh(part)
    return PartOut.model_validate(part)


def delete_part(db: Session, viewer_id: int, part_id: int) -> None:
    """Delete a part, detaching its chapters."""
    with transaction(db):
        part, book = get_part_for_owner(db, viewer_id, part_id)
        get_book_for_owner(db, viewer_id, book.id, for_update=True)
        db.execute(
            update(Chapter)
            .where(Chapter.part_id == part.id)
            .values(part_id=None)
            .execution_options(synchronize_session="fetch")
        )
        db.delete(part)

    logger.info("part_deleted", book_id=book.id, part_id=part_id)
