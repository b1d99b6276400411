"""Automatic wiki upkeep driven by chapter summaries.

After a summary is stored, every character it names is synced:

1. Ask the model for a new page (missing) or a reconciliation (existing).
2. In one transaction: write the page and its audit entry, upsert the
   chapter mention and bump the book's character roster.

Characters are independent. A failure for one is logged and rolled back
without affecting the others, and nothing here ever raises to the caller.
"""

from dataclasses import dataclass, field

from pydantic import ValidationError
from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from betareader.db.models import Chapter, ChapterWikiMention, WikiPage, WikiPageType, WikiUpdateType
from betareader.db.session import transaction
from betareader.logging import get_logger
from betareader.schemas.summaries import SummaryPayload, WikiProfilePayload, WikiReconcilePayload
from betareader.services.llm import LLMClient, LLMError, LLMOperation
from betareader.services.llm.prompt import (
    render_wiki_profile_prompt,
    render_wiki_reconcile_prompt,
)
from betareader.services.wiki import log_wiki_update

logger = get_logger(__name__)

WIKI_TEMPERATURE = 0.3


@dataclass
class WikiSyncResult:
    """Counts from one sync run, for logging and tests."""

    pages_created: int = 0
    pages_updated: int = 0
    failed: list[str] = field(default_factory=list)


def _find_page(db: Session, book_id: str, name: str) -> WikiPage | None:
    return db.scalars(
        select(WikiPage)
        .where(WikiPage.book_id == book_id)
        .where(func.lower(WikiPage.page_name) == name.lower())
    ).first()


def _fallback_profile(name: str, chapter_id: str) -> WikiProfilePayload:
    return WikiProfilePayload(
        content=f"# {name}\n\nFirst mentioned in chapter {chapter_id}.",
        summary=None,
    )


def _mention_context(name: str, payload: SummaryPayload) -> str | None:
    """First beat naming the character, if any."""
    lowered = name.lower()
    for beat in payload.beats:
        if lowered in beat.lower():
            return beat
    return None


def _is_pov(name: str, payload: SummaryPayload) -> bool:
    return bool(payload.pov) and name.lower() in payload.pov.lower()


async def _request_profile(
    llm: LLMClient, name: str, chapter: Chapter, payload: SummaryPayload
) -> WikiProfilePayload:
    messages = render_wiki_profile_prompt(name, chapter.id, chapter.text, payload.summary)
    try:
        data = await llm.generate_json(
            messages, temperature=WIKI_TEMPERATURE, operation=LLMOperation.WIKI_CREATE
        )
        return WikiProfilePayload.model_validate(data)
    except (LLMError, ValidationError) as e:
        logger.warning(
            "wiki_profile_fallback",
            chapter_id=chapter.id,
            error_type=type(e).__name__,
        )
        return _fallback_profile(name, chapter.id)


async def _request_reconcile(
    llm: LLMClient, page: WikiPage, chapter: Chapter, payload: SummaryPayload
) -> WikiReconcilePayload | None:
    messages = render_wiki_reconcile_prompt(
        page.page_name, page.content, page.summary, chapter.id, chapter.text, payload.summary
    )
    try:
        data = await llm.generate_json(
            messages, temperature=WIKI_TEMPERATURE, operation=LLMOperation.WIKI_RECONCILE
        )
        return WikiReconcilePayload.model_validate(data)
    except (LLMError, ValidationError) as e:
        logger.warning(
            "wiki_reconcile_skipped",
            chapter_id=chapter.id,
            wiki_page_id=page.id,
            error_type=type(e).__name__,
        )
        return None


def _upsert_mention(
    db: Session, chapter_id: str, page_id: int, context: str | None, is_primary: bool
) -> bool:
    """Upsert the chapter mention. Returns True if it did not exist before."""
    existed = db.scalar(
        select(ChapterWikiMention.id)
        .where(ChapterWikiMention.chapter_id == chapter_id)
        .where(ChapterWikiMention.wiki_page_id == page_id)
    )
    db.execute(
        text("""
            INSERT INTO chapter_wiki_mentions
                (chapter_id, wiki_page_id, mention_context, is_primary)
            VALUES (:chapter_id, :page_id, :context, :is_primary)
            ON CONFLICT (chapter_id, wiki_page_id) DO UPDATE SET
                mention_context = excluded.mention_context,
                is_primary = excluded.is_primary
        """),
        {
            "chapter_id": chapter_id,
            "page_id": page_id,
            "context": context,
            "is_primary": is_primary,
        },
    )
    return existed is None


def _upsert_roster(
    db: Session, book_id: str, name: str, chapter_id: str, page_id: int, new_mention: bool
) -> None:
    """Insert the roster entry with count 1, or link it and count a new chapter."""
    db.execute(
        text("""
            INSERT INTO book_characters (
                book_id, character_name, first_mentioned_chapter,
                mention_count, has_wiki_page, wiki_page_id
            )
            VALUES (:book_id, :name, :chapter_id, 1, :has_page, :page_id)
            ON CONFLICT (book_id, character_name) DO UPDATE SET
                mention_count = book_characters.mention_count + :increment,
                has_wiki_page = excluded.has_wiki_page,
                wiki_page_id = excluded.wiki_page_id,
                updated_at = CURRENT_TIMESTAMP
        """),
        {
            "book_id": book_id,
            "name": name,
            "chapter_id": chapter_id,
            "has_page": True,
            "page_id": page_id,
            "increment": 1 if new_mention else 0,
        },
    )


async def _sync_character(
    db: Session,
    llm: LLMClient,
    book_id: str,
    chapter: Chapter,
    name: str,
    payload: SummaryPayload,
    result: WikiSyncResult,
) -> None:
    page = _find_page(db, book_id, name)

    if page is None:
        profile = await _request_profile(llm, name, chapter, payload)
        with transaction(db):
            page = WikiPage(
                book_id=book_id,
                page_name=name,
                page_type=WikiPageType.character.value,
                content=profile.content,
                summary=profile.summary,
                aliases=profile.aliases,
                tags=profile.tags,
                is_major=profile.is_major,
                created_by_ai=True,
            )
            db.add(page)
            db.flush()
            log_wiki_update(
                db,
                page,
                WikiUpdateType.created,
                previous_content=None,
                new_content=page.content,
                change_summary=f"Created from chapter {chapter.id}",
                chapter_id=chapter.id,
            )
            new_mention = _upsert_mention(
                db, chapter.id, page.id, _mention_context(name, payload), _is_pov(name, payload)
            )
            _upsert_roster(db, book_id, name, chapter.id, page.id, new_mention)
        result.pages_created += 1
        logger.info("wiki_page_created", book_id=book_id, wiki_page_id=page.id, created_by_ai=True)
        return

    reconcile = await _request_reconcile(llm, page, chapter, payload)
    with transaction(db):
        if reconcile is not None and reconcile.has_changes:
            previous_content = page.content
            if reconcile.updated_content:
                page.content = reconcile.updated_content
            if reconcile.updated_summary:
                page.summary = reconcile.updated_summary
            update_type = (
                WikiUpdateType.contradiction_noted
                if reconcile.contradictions
                else WikiUpdateType.updated
            )
            log_wiki_update(
                db,
                page,
                update_type,
                previous_content=previous_content,
                new_content=page.content,
                change_summary=reconcile.change_summary,
                chapter_id=chapter.id,
                contradiction_notes=reconcile.contradictions,
            )
            result.pages_updated += 1
        new_mention = _upsert_mention(
            db, chapter.id, page.id, _mention_context(name, payload), _is_pov(name, payload)
        )
        _upsert_roster(db, book_id, page.page_name, chapter.id, page.id, new_mention)
        db.flush()


async def sync_wiki_from_summary(
    db: Session,
    llm: LLMClient,
    book_id: str,
    chapter: Chapter,
    payload: SummaryPayload,
) -> WikiSyncResult:
    """Bring the book's wiki in line with a freshly stored chapter summary.

    Args:
        db: Database session. Each character commits separately.
        llm: Model client used for page creation and reconciliation.
        book_id: Book the chapter belongs to.
        chapter: The summarized chapter.
        payload: The validated summary, whose ``characters`` drive the sync.

    Returns:
        Counts of created and updated pages plus the names that failed.
    """
    result = WikiSyncResult()
    for name in payload.characters:
        try:
            await _sync_character(db, llm, book_id, chapter, name, payload, result)
        except Exception as e:
            db.rollback()
            result.failed.append(name)
            logger.error(
                "wiki_sync_character_failed",
                book_id=book_id,
                chapter_id=chapter.id,
                error_type=type(e).__name__,
                error=str(e),
            )

    logger.info(
        "wiki_sync_finished",
        book_id=book_id,
        chapter_id=chapter.id,
        characters=len(payload.characters),
        pages_created=result.pages_created,
        pages_updated=result.pages_updated,
        failed=len(result.failed),
    )
    return result
