"""Chapter service.

Every operation checks book ownership before reading or writing. New
chapters are appended to the end of the book order; deleting a chapter
removes it from the book order and from its part order in the same
transaction.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from betareader.auth.permissions import get_book_for_owner, get_chapter_for_owner
from betareader.db.models import BookPart, Chapter, ChapterSummary
from betareader.db.session import transaction
from betareader.errors import ApiErrorCode, InvalidRequestError
from betareader.logging import get_logger
from betareader.schemas.chapters import (
    ChapterDetailOut,
    ChapterListItemOut,
    ChapterOut,
    ChapterUpsertOut,
    SummaryOut,
    UpsertChapterRequest,
)
from betareader.services.ordering import index_of, remove_id

logger = get_logger(__name__)


def count_words(text: str) -> int:
    """Whitespace-delimited word count; empty or blank text counts as 0."""
    return len(text.split())


def upsert_chapter(db: Session, viewer_id: int, req: UpsertChapterRequest) -> ChapterUpsertOut:
    """Create or replace a chapter.

    Raises:
        NotFoundError(E_BOOK_NOT_FOUND): Book does not exist.
        ForbiddenError: Book belongs to another user.
        InvalidRequestError(E_CHAPTER_BOOK_MISMATCH): The chapter id already
            exists in a different book.
    """
    word_count = count_words(req.text)

    with transaction(db):
        book = get_book_for_owner(db, viewer_id, req.book_id, for_update=True)

        chapter = db.get(Chapter, req.id)
        if chapter is not None:
            if chapter.book_id != book.id:
                raise InvalidRequestError(
                    ApiErrorCode.E_CHAPTER_BOOK_MISMATCH,
                    "Chapter belongs to a different book",
                )
            chapter.title = req.title
            chapter.text = req.text
            chapter.word_count = word_count
            created = False
        else:
            chapter = Chapter(
                id=req.id,
                book_id=book.id,
                title=req.title,
                text=req.text,
                word_count=word_count,
            )
            db.add(chapter)
            created = True

        if req.id not in book.chapter_order:
            book.chapter_order = [*book.chapter_order, req.id]

        db.flush()

    db.refresh(chapter)
    logger.info("chapter_upserted", book_id=book.id, chapter_id=chapter.id, created=created)
    return ChapterUpsertOut(chapter=ChapterOut.model_validate(chapter), word_count=word_count)


def get_chapter(db: Session, viewer_id: int, chapter_id: str) -> ChapterDetailOut:
    """Get a chapter with its latest summary (None if never summarized)."""
    chapter, _ = get_chapter_for_owner(db, viewer_id, chapter_id)
    summary = db.get(ChapterSummary, chapter.id)
    return ChapterDetailOut(
        **ChapterOut.model_validate(chapter).model_dump(),
        summary=SummaryOut.model_validate(summary) if summary else None,
    )


def list_chapters(db: Session, viewer_id: int, book_id: str) -> list[ChapterListItemOut]:
    """List a book's chapters in book order.

    Chapters missing from the book order (which should not happen) are listed
    last, by id, rather than hidden.
    """
    book = get_book_for_owner(db, viewer_id, book_id)

    rows = db.execute(
        select(Chapter, BookPart.name, ChapterSummary.chapter_id)
        .outerjoin(BookPart, BookPart.id == Chapter.part_id)
        .outerjoin(ChapterSummary, ChapterSummary.chapter_id == Chapter.id)
        .where(Chapter.book_id == book.id)
    ).all()

    part_orders = {
        part.id: part.chapter_order
        for part in db.scalars(select(BookPart).where(BookPart.book_id == book.id))
    }
    book_index = {cid: i for i, cid in enumerate(book.chapter_order)}
    rows.sort(key=lambda r: (book_index.get(r[0].id, len(book_index)), r[0].id))

    items = []
    for position, (chapter, part_name, summary_chapter_id) in enumerate(rows):
        part_position = None
        if chapter.part_id is not None:
            part_position = index_of(part_orders.get(chapter.part_id, []), chapter.id)
        items.append(
            ChapterListItemOut(
                id=chapter.id,
                title=chapter.title,
                word_count=chapter.word_count,
                has_summary=summary_chapter_id is not None,
                part_id=chapter.part_id,
                part_name=part_name,
                position=position,
                part_position=part_position,
                updated_at=chapter.updated_at,
            )
        )
    return items


def delete_chapter(db: Session, viewer_id: int, chapter_id: str) -> None:
    """Delete a chapter and remove it from the book and part orders."""
    with transaction(db):
        chapter, _ = get_chapter_for_owner(db, viewer_id, chapter_id)
        book = get_book_for_owner(db, viewer_id, chapter.book_id, for_update=True)

        book.chapter_order = remove_id(book.chapter_order, chapter.id)
        if chapter.part_id is not None:
            part = db.get(BookPart, chapter.part_id)
            if part is not None:
                part.chapter_order = remove_id(part.chapter_order, chapter.id)

        db.delete(chapter)

    logger.info("chapter_deleted", book_id=book.id, chapter_id=chapter_id)
