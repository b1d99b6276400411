"""Ownership checks for books and everything reachable through a book.

Every resource belongs to exactly one book, and a book to exactly one user.
All loaders follow the same pattern: fetch the row, 404 if absent, then
compare the owning book's user_id with the viewer and 403 on mismatch.
Loaders run before any other read or write in a service function.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from betareader.db.models import (
    AIProfile,
    Book,
    BookPart,
    Chapter,
    ChapterReview,
    CustomReviewerProfile,
    WikiPage,
)
from betareader.errors import ApiErrorCode, ForbiddenError, NotFoundError


def is_book_owner(db: Session, viewer_id: int, book_id: str) -> bool:
    """Return True iff the book exists and is owned by the viewer."""
    owner_id = db.scalar(select(Book.user_id).where(Book.id == book_id))
    return owner_id is not None and owner_id == viewer_id


def get_book_for_owner(
    db: Session, viewer_id: int, book_id: str, for_update: bool = False
) -> Book:
    """Load a book the viewer owns.

    Args:
        for_update: Lock the row (SELECT ... FOR UPDATE) for order mutations.

    Raises:
        NotFoundError(E_BOOK_NOT_FOUND): Book does not exist.
        ForbiddenError: Book belongs to another user.
    """
    stmt = select(Book).where(Book.id == book_id)
    if for_update:
        stmt = stmt.with_for_update()
    book = db.scalars(stmt).first()
    if book is None:
        raise NotFoundError(ApiErrorCode.E_BOOK_NOT_FOUND, "Book not found")
    if book.user_id != viewer_id:
        raise ForbiddenError(message="Not authorized to access this book")
    return book


def get_chapter_for_owner(db: Session, viewer_id: int, chapter_id: str) -> tuple[Chapter, Book]:
    """Load a chapter and its book, enforcing ownership through the book."""
    chapter = db.get(Chapter, chapter_id)
    if chapter is None:
        raise NotFoundError(ApiErrorCode.E_CHAPTER_NOT_FOUND, "Chapter not found")
    book = db.get(Book, chapter.book_id)
    if book is None or book.user_id != viewer_id:
        raise ForbiddenError(message="Not authorized to access this chapter")
    return chapter, book


def get_part_for_owner(db: Session, viewer_id: int, part_id: int) -> tuple[BookPart, Book]:
    part = db.get(BookPart, part_id)
    if part is None:
        raise NotFoundError(ApiErrorCode.E_PART_NOT_FOUND, "Part not found")
    book = db.get(Book, part.book_id)
    if book is None or book.user_id != viewer_id:
        raise ForbiddenError(message="Not authorized to access this part")
    return part, book


def get_wiki_page_for_owner(db: Session, viewer_id: int, page_id: int) -> WikiPage:
    page = db.get(WikiPage, page_id)
    if page is None:
        raise NotFoundError(ApiErrorCode.E_WIKI_PAGE_NOT_FOUND, "Wiki page not found")
    if not is_book_owner(db, viewer_id, page.book_id):
        raise ForbiddenError(message="Not authorized to access this wiki page")
    return page


def get_review_for_owner(db: Session, viewer_id: int, review_id: int) -> ChapterReview:
    review = db.get(ChapterReview, review_id)
    if review is None:
        raise NotFoundError(ApiErrorCode.E_REVIEW_NOT_FOUND, "Review not found")
    get_chapter_for_owner(db, viewer_id, review.chapter_id)
    return review


def get_custom_profile_for_owner(
    db: Session, viewer_id: int, profile_id: int
) -> CustomReviewerProfile:
    profile = db.get(CustomReviewerProfile, profile_id)
    if profile is None:
        raise NotFoundError(ApiErrorCode.E_PROFILE_NOT_FOUND, "Profile not found")
    if profile.user_id != viewer_id:
        raise ForbiddenError(message="Not authorized to access this profile")
    return profile


def get_ai_profile_for_owner(db: Session, viewer_id: int, profile_id: int) -> AIProfile:
    """Load an AI profile the viewer may modify.

    Raises:
        NotFoundError(E_PROFILE_NOT_FOUND): Profile does not exist.
        ForbiddenError(E_SYSTEM_PROFILE_READONLY): Profile is a shared system profile.
        ForbiddenError: Profile belongs to another user.
    """
    profile = db.get(AIProfile, profile_id)
    if profile is None:
        raise NotFoundError(ApiErrorCode.E_PROFILE_NOT_FOUND, "Profile not found")
    if profile.is_system:
        raise ForbiddenError(
            ApiErrorCode.E_SYSTEM_PROFILE_READONLY, "System profiles cannot be modified"
        )
    if profile.user_id != viewer_id:
        raise ForbiddenError(message="Not authorized to access this profile")
    return profile
