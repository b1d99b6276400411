"""Chapter ordering service.

A book's canonical order is ``books.chapter_order``: every chapter id of the
book exactly once. Each part keeps its own ``chapter_order``, a subset of the
book order holding exactly the chapters whose ``part_id`` points at it.

Both mutations lock the book row and run in a single transaction, so a
failure in any step leaves every order untouched.

The list helpers at the top are pure and never touch the database. They
always return new lists; array columns must be reassigned, not mutated.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from betareader.auth.permissions import get_book_for_owner, get_chapter_for_owner
from betareader.db.models import Book, BookPart, Chapter
from betareader.db.session import transaction
from betareader.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from betareader.logging import get_logger
from betareader.schemas.ordering import (
    UNASSIGNED_PART_KEY,
    BookOrderOut,
    ChapterPositionOut,
    MoveChapterRequest,
    PartOut,
    ReorderChaptersRequest,
)

logger = get_logger(__name__)

# =============================================================================
# Pure list helpers
# =============================================================================


def remove_id(order: list[str], chapter_id: str) -> list[str]:
    """Return ``order`` without any occurrence of ``chapter_id``."""
    return [cid for cid in order if cid != chapter_id]


def insert_at(order: list[str], chapter_id: str, index: int) -> list[str]:
    """Return ``order`` with ``chapter_id`` inserted at ``index``.

    The index is clamped to [0, len(order)], so out-of-range values append
    or prepend instead of failing.
    """
    index = max(0, min(index, len(order)))
    return [*order[:index], chapter_id, *order[index:]]


def index_of(order: list[str], chapter_id: str) -> int | None:
    try:
        return order.index(chapter_id)
    except ValueError:
        return None


def validate_permutation(candidate: list[str], expected: set[str]) -> None:
    """Check that ``candidate`` lists every id in ``expected`` exactly once.

    Raises:
        InvalidRequestError(E_INVALID_ORDER): Duplicates, unknown or missing ids.
    """
    if len(candidate) != len(set(candidate)):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_ORDER, "Chapter order contains duplicates"
        )

    unknown = set(candidate) - expected
    if unknown:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_ORDER,
            f"Chapter order contains chapters not in this book: {sorted(unknown)}",
        )

    missing = expected - set(candidate)
    if missing:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_ORDER,
            f"Chapter order is missing chapters: {sorted(missing)}",
        )


# =============================================================================
# Steps
# =============================================================================


def _lock_book(db: Session, viewer_id: int, book_id: str) -> Book:
    return get_book_for_owner(db, viewer_id, book_id, for_update=True)


def _get_part_in_book(db: Session, book_id: str, part_id: int) -> BookPart:
    part = db.get(BookPart, part_id)
    if part is None or part.book_id != book_id:
        raise NotFoundError(ApiErrorCode.E_PART_NOT_FOUND, "Part not found")
    return part


def _reassign_part(
    db: Session,
    chapter: Chapter,
    new_part_id: int | None,
    position_in_part: int | None,
) -> None:
    """Move a chapter out of its current part and into ``new_part_id``.

    ``position_in_part`` is 1-based; None appends.
    """
    new_part = None
    if new_part_id is not None:
        new_part = _get_part_in_book(db, chapter.book_id, new_part_id)

    if chapter.part_id is not None:
        old_part = db.get(BookPart, chapter.part_id)
        if old_part is not None:
            old_part.chapter_order = remove_id(old_part.chapter_order, chapter.id)

    chapter.part_id = new_part_id

    if new_part is not None:
        order = remove_id(new_part.chapter_order, chapter.id)
        index = position_in_part - 1 if position_in_part is not None else len(order)
        new_part.chapter_order = insert_at(order, chapter.id, index)


def _reposition_in_part(db: Session, chapter: Chapter, position_in_part: int) -> None:
    """Move a chapter within the part it already belongs to."""
    part = db.get(BookPart, chapter.part_id)
    if part is None:
        return
    order = remove_id(part.chapter_order, chapter.id)
    part.chapter_order = insert_at(order, chapter.id, position_in_part - 1)


def _reposition_in_book(book: Book, chapter_id: str, position: int) -> None:
    """Move a chapter to the 0-based ``position`` of the book order (clamped)."""
    order = remove_id(book.chapter_order, chapter_id)
    book.chapter_order = insert_at(order, chapter_id, position)


# =============================================================================
# Service Functions
# =============================================================================


def move_chapter(
    db: Session, viewer_id: int, chapter_id: str, req: MoveChapterRequest
) -> ChapterPositionOut:
    """Reassign a chapter's part and/or move it within the book order.

    Args:
        db: Database session.
        viewer_id: The ID of the viewer.
        chapter_id: The chapter to move.
        req: Part change (tri-state part_id plus optional 1-based
            position_in_part) and/or a 0-based book position.

    Returns:
        The chapter's resulting part and positions.

    Raises:
        NotFoundError(E_CHAPTER_NOT_FOUND): Chapter does not exist.
        ForbiddenError: Chapter belongs to another user's book.
        NotFoundError(E_PART_NOT_FOUND): Target part is not in this book.
    """
    with transaction(db):
        chapter, _ = get_chapter_for_owner(db, viewer_id, chapter_id)
        book = _lock_book(db, viewer_id, chapter.book_id)

        if req.moves_part:
            _reassign_part(db, chapter, req.part_id, req.position_in_part)
        elif req.position_in_part is not None and chapter.part_id is not None:
            _reposition_in_part(db, chapter, req.position_in_part)

        if req.position is not None:
            _reposition_in_book(book, chapter.id, req.position)

        db.flush()

    part_position = None
    if chapter.part_id is not None:
        part = db.get(BookPart, chapter.part_id)
        part_position = index_of(part.chapter_order, chapter.id) if part else None

    logger.info(
        "chapter_moved",
        book_id=book.id,
        chapter_id=chapter.id,
        part_id=chapter.part_id,
        position=req.position,
    )

    return ChapterPositionOut(
        chapter_id=chapter.id,
        part_id=chapter.part_id,
        position=index_of(book.chapter_order, chapter.id) or 0,
        part_position=part_position,
        chapter_order=list(book.chapter_order),
    )


def _parse_part_key(key: str, parts: dict[int, BookPart]) -> int | None:
    if key == UNASSIGNED_PART_KEY:
        return None
    try:
        part_id = int(key)
    except ValueError as e:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_ORDER, f"Invalid part key '{key}'"
        ) from e
    if part_id not in parts:
        raise NotFoundError(ApiErrorCode.E_PART_NOT_FOUND, f"Part {part_id} not found")
    return part_id


def reorder_book(
    db: Session, viewer_id: int, book_id: str, req: ReorderChaptersRequest
) -> BookOrderOut:
    """Replace the book order and any listed part orders in one transaction.

    Rules:
    - chapter_order must be a permutation of the book's chapter ids
    - each part_orders list may only hold chapters of this book, each chapter
      in at most one list
    - chapters listed under a part (or "none") get their part_id updated and
      are stripped from every part that was not listed
    - chapters left out of their own part's new list are unassigned

    Raises:
        InvalidRequestError(E_INVALID_ORDER): Any rule above is violated.
        NotFoundError(E_PART_NOT_FOUND): A part key is not a part of this book.
    """
    with transaction(db):
        book = _lock_book(db, viewer_id, book_id)

        chapter_ids = set(db.scalars(select(Chapter.id).where(Chapter.book_id == book.id)))
        validate_permutation(req.chapter_order, chapter_ids)

        parts = {
            p.id: p
            for p in db.scalars(
                select(BookPart).where(BookPart.book_id == book.id).order_by(BookPart.id)
            )
        }

        assignments: dict[str, int | None] = {}
        listed: dict[int, list[str]] = {}
        for key, ids in req.part_orders.items():
            part_id = _parse_part_key(key, parts)
            for cid in ids:
                if cid not in chapter_ids:
                    raise InvalidRequestError(
                        ApiErrorCode.E_INVALID_ORDER, f"Chapter '{cid}' is not in this book"
                    )
                if cid in assignments:
                    raise InvalidRequestError(
                        ApiErrorCode.E_INVALID_ORDER,
                        f"Chapter '{cid}' appears more than once in part orders",
                    )
                assignments[cid] = part_id
            if part_id is not None:
                listed[part_id] = list(ids)

        book.chapter_order = list(req.chapter_order)

        for part_id, part in parts.items():
            if part_id in listed:
                part.chapter_order = listed[part_id]
            else:
                part.chapter_order = [c for c in part.chapter_order if c not in assignments]

        if assignments:
            for chapter in db.scalars(select(Chapter).where(Chapter.id.in_(list(assignments)))):
                chapter.part_id = assignments[chapter.id]

        if listed:
            dropped = db.scalars(
                select(Chapter).where(
                    Chapter.book_id == book.id,
                    Chapter.part_id.in_(list(listed)),
                    Chapter.id.not_in(list(assignments)),
                )
            )
            for chapter in dropped:
                chapter.part_id = None

        db.flush()

    logger.info(
        "book_reordered",
        book_id=book.id,
        chapter_count=len(book.chapter_order),
        parts_listed=len(listed),
    )

    for part in parts.values():
        db.refresh(part)

    return BookOrderOut(
        book_id=book.id,
        chapter_order=list(book.chapter_order),
        parts=[PartOut.model_validate(p) for p in parts.values()],
    )
