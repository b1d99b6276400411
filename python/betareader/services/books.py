"""Book service.

Book ids are chosen by the client. Creating a book with an id that another
user already owns is a 403, never an overwrite.
"""

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from betareader.auth.permissions import get_book_for_owner
from betareader.db.models import Book, Chapter
from betareader.db.session import transaction
from betareader.errors import ConflictError, ForbiddenError
from betareader.logging import get_logger
from betareader.schemas.books import BookListItemOut, BookOut, UpsertBookRequest

logger = get_logger(__name__)


def upsert_book(db: Session, viewer_id: int, req: UpsertBookRequest) -> BookOut:
    """Create a book, or update the title of one the viewer owns.

    Raises:
        ForbiddenError: The id belongs to another user's book.
        ConflictError: A concurrent request created the same id first.
    """
    try:
        with transaction(db):
            book = db.get(Book, req.id)
            if book is not None:
                if book.user_id != viewer_id:
                    raise ForbiddenError(message="Not authorized to modify this book")
                book.title = req.title
                created = False
            else:
                book = Book(id=req.id, user_id=viewer_id, title=req.title, chapter_order=[])
                db.add(book)
                created = True
            db.flush()
    except IntegrityError as e:
        raise ConflictError(message="Book already exists") from e

    db.refresh(book)
    logger.info("book_upserted", book_id=book.id, created=created)
    return BookOut.model_validate(book)


def list_books(db: Session, viewer_id: int) -> list[BookListItemOut]:
    """List the viewer's books with chapter stats, most recently updated first."""
    stats = (
        select(
            Chapter.book_id.label("book_id"),
            func.count(Chapter.id).label("chapter_count"),
            func.coalesce(func.sum(Chapter.word_count), 0).label("total_word_count"),
        )
        .group_by(Chapter.book_id)
        .subquery()
    )
    rows = db.execute(
        select(Book, stats.c.chapter_count, stats.c.total_word_count)
        .outerjoin(stats, stats.c.book_id == Book.id)
        .where(Book.user_id == viewer_id)
        .order_by(Book.updated_at.desc(), Book.id.asc())
    ).all()

    return [
        BookListItemOut(
            **BookOut.model_validate(book).model_dump(),
            chapter_count=chapter_count or 0,
            total_word_count=total_word_count or 0,
        )
        for book, chapter_count, total_word_count in rows
    ]


def get_book(db: Session, viewer_id: int, book_id: str) -> BookOut:
    book = get_book_for_owner(db, viewer_id, book_id)
    return BookOut.model_validate(book)


def delete_book(db: Session, viewer_id: int, book_id: str) -> None:
    """Delete a book. Chapters, parts, summaries, reviews and wiki rows cascade."""
    book = get_book_for_owner(db, viewer_id, book_id)
    with transaction(db):
        db.delete(book)
    logger.info("book_deleted", book_id=book_id)
