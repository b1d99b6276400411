"""Wiki page service.

Pages belong to a book and are edited by hand here; automatic upkeep from
chapter summaries lives in ``wiki_sync``. Every content change made through
this module appends one ``manual_edit`` row to the page's audit log.
"""

import difflib
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from betareader.auth.permissions import get_book_for_owner, get_wiki_page_for_owner
from betareader.db.models import (
    BookCharacter,
    Chapter,
    ChapterWikiMention,
    WikiPage,
    WikiUpdate,
    WikiUpdateType,
)
from betareader.db.session import transaction
from betareader.errors import ConflictError
from betareader.logging import get_logger
from betareader.schemas.wiki import (
    BookCharacterOut,
    CreateWikiPageRequest,
    FindReplaceOut,
    FindReplaceRequest,
    UpdateWikiPageRequest,
    WikiMentionOut,
    WikiPageOut,
    WikiUpdateOut,
)

logger = get_logger(__name__)


def describe_content_change(previous: str, new: str) -> str:
    """Summarize a content edit as line counts, e.g. "Manual edit: +3 lines, -1 line"."""
    added = removed = 0
    for line in difflib.ndiff(previous.splitlines(), new.splitlines()):
        if line.startswith("+ "):
            added += 1
        elif line.startswith("- "):
            removed += 1

    def _lines(n: int) -> str:
        return f"{n} line" if n == 1 else f"{n} lines"

    return f"Manual edit: +{_lines(added)}, -{_lines(removed)}"


def log_wiki_update(
    db: Session,
    page: WikiPage,
    update_type: WikiUpdateType,
    previous_content: str | None,
    new_content: str | None,
    change_summary: str | None,
    chapter_id: str | None = None,
    contradiction_notes: str | None = None,
) -> None:
    db.add(
        WikiUpdate(
            wiki_page_id=page.id,
            chapter_id=chapter_id,
            update_type=update_type.value,
            previous_content=previous_content,
            new_content=new_content,
            change_summary=change_summary,
            contradiction_notes=contradiction_notes,
        )
    )


# =============================================================================
# Pages
# =============================================================================


def list_pages(db: Session, viewer_id: int, book_id: str) -> list[WikiPageOut]:
    """List a book's pages: major pages first, then by type and name."""
    book = get_book_for_owner(db, viewer_id, book_id)
    pages = db.scalars(
        select(WikiPage)
        .where(WikiPage.book_id == book.id)
        .order_by(WikiPage.is_major.desc(), WikiPage.page_type.asc(), WikiPage.page_name.asc())
    ).all()
    return [WikiPageOut.model_validate(p) for p in pages]


def get_page(db: Session, viewer_id: int, page_id: int) -> WikiPageOut:
    page = get_wiki_page_for_owner(db, viewer_id, page_id)
    return WikiPageOut.model_validate(page)


def create_page(
    db: Session, viewer_id: int, book_id: str, req: CreateWikiPageRequest
) -> WikiPageOut:
    """Create a page by hand and log a ``created`` update.

    Raises:
        ConflictError: The book already has a page with this name.
    """
    book = get_book_for_owner(db, viewer_id, book_id)
    page = WikiPage(
        book_id=book.id,
        page_name=req.page_name,
        page_type=req.page_type,
        content=req.content,
        summary=req.summary,
        aliases=list(req.aliases),
        tags=list(req.tags),
        is_major=req.is_major,
        created_by_ai=False,
    )
    try:
        with transaction(db):
            db.add(page)
            db.flush()
            log_wiki_update(
                db,
                page,
                WikiUpdateType.created,
                previous_content=None,
                new_content=page.content,
                change_summary="Page created manually",
            )
            db.flush()
    except IntegrityError as e:
        raise ConflictError(message=f"A wiki page named '{req.page_name}' already exists") from e

    db.refresh(page)
    logger.info("wiki_page_created", book_id=book.id, wiki_page_id=page.id, created_by_ai=False)
    return WikiPageOut.model_validate(page)


def update_page(
    db: Session, viewer_id: int, page_id: int, req: UpdateWikiPageRequest
) -> WikiPageOut:
    """Partially update a page.

    Only fields present in the request body are written. A change to
    ``content`` appends exactly one ``manual_edit`` update; edits that leave
    the content unchanged are not logged.

    Raises:
        ConflictError: The new name collides with another page in the book.
    """
    page = get_wiki_page_for_owner(db, viewer_id, page_id)
    fields = req.model_dump(exclude_unset=True)

    try:
        with transaction(db):
            previous_content = page.content
            for field, value in fields.items():
                if field in ("page_name", "page_type", "content", "is_major") and value is None:
                    continue
                if field in ("aliases", "tags"):
                    value = list(value or [])
                setattr(page, field, value)

            if page.content != previous_content:
                log_wiki_update(
                    db,
                    page,
                    WikiUpdateType.manual_edit,
                    previous_content=previous_content,
                    new_content=page.content,
                    change_summary=describe_content_change(previous_content, page.content),
                )
            db.flush()
    except IntegrityError as e:
        raise ConflictError(message=f"A wiki page named '{req.page_name}' already exists") from e

    db.refresh(page)
    return WikiPageOut.model_validate(page)


def delete_page(db: Session, viewer_id: int, page_id: int) -> None:
    """Delete a page together with its history and mentions."""
    page = get_wiki_page_for_owner(db, viewer_id, page_id)
    with transaction(db):
        db.delete(page)
    logger.info("wiki_page_deleted", wiki_page_id=page_id)


def get_history(db: Session, viewer_id: int, page_id: int) -> list[WikiUpdateOut]:
    """Audit log of a page, newest first."""
    page = get_wiki_page_for_owner(db, viewer_id, page_id)
    updates = db.scalars(
        select(WikiUpdate)
        .where(WikiUpdate.wiki_page_id == page.id)
        .order_by(WikiUpdate.created_at.desc(), WikiUpdate.id.desc())
    ).all()
    return [WikiUpdateOut.model_validate(u) for u in updates]


def find_and_replace(
    db: Session, viewer_id: int, page_id: int, req: FindReplaceRequest
) -> FindReplaceOut:
    """Replace every case-insensitive occurrence of ``search`` in selected fields.

    ``search`` is matched literally, never as a pattern, and ``replace`` is
    inserted as-is (backslashes and group references are not expanded).
    """
    page = get_wiki_page_for_owner(db, viewer_id, page_id)
    pattern = re.compile(re.escape(req.search), re.IGNORECASE)

    total = 0
    try:
        with transaction(db):
            previous_content = page.content
            for field in dict.fromkeys(req.fields):
                value = getattr(page, field)
                if not value:
                    continue
                new_value, count = pattern.subn(lambda _m: req.replace, value)
                if count:
                    setattr(page, field, new_value)
                    total += count

            if page.content != previous_content:
                log_wiki_update(
                    db,
                    page,
                    WikiUpdateType.manual_edit,
                    previous_content=previous_content,
                    new_content=page.content,
                    change_summary=f"Replaced '{req.search}' with '{req.replace}'",
                )
            db.flush()
    except IntegrityError as e:
        raise ConflictError(message="Replacement would duplicate an existing page name") from e

    db.refresh(page)
    logger.info("wiki_find_replace", wiki_page_id=page.id, replacements=total)
    return FindReplaceOut(page=WikiPageOut.model_validate(page), replacements=total)


# =============================================================================
# Roster and mentions
# =============================================================================


def list_characters(db: Session, viewer_id: int, book_id: str) -> list[BookCharacterOut]:
    """Character roster of a book, most mentioned first."""
    book = get_book_for_owner(db, viewer_id, book_id)
    characters = db.scalars(
        select(BookCharacter)
        .where(BookCharacter.book_id == book.id)
        .order_by(BookCharacter.mention_count.desc(), BookCharacter.character_name.asc())
    ).all()
    return [BookCharacterOut.model_validate(c) for c in characters]


def list_page_mentions(db: Session, viewer_id: int, page_id: int) -> list[WikiMentionOut]:
    page = get_wiki_page_for_owner(db, viewer_id, page_id)
    rows = db.execute(
        select(ChapterWikiMention, Chapter.title)
        .join(Chapter, Chapter.id == ChapterWikiMention.chapter_id)
        .where(ChapterWikiMention.wiki_page_id == page.id)
        .order_by(ChapterWikiMention.chapter_id.asc())
    ).all()
    return [
        WikiMentionOut(
            chapter_id=mention.chapter_id,
            chapter_title=title,
            mention_context=mention.mention_context,
            is_primary=mention.is_primary,
            created_at=mention.created_at,
        )
        for mention, title in rows
    ]
