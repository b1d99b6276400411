"""Chapter summary generation.

One JSON-mode completion per request. The validated result replaces the
chapter's stored summary, then wiki upkeep runs over the characters it
names. Wiki failures are logged by the sync and never fail the summary.
"""

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from betareader.auth.permissions import get_chapter_for_owner
from betareader.db.models import Chapter, ChapterSummary
from betareader.db.session import transaction
from betareader.logging import get_logger, set_content_context
from betareader.schemas.chapters import SummaryOut
from betareader.schemas.summaries import SummaryPayload
from betareader.services.llm import LLMClient, LLMError, LLMErrorClass, LLMOperation
from betareader.services.llm.prompt import render_summary_prompt
from betareader.services.wiki_sync import sync_wiki_from_summary

logger = get_logger(__name__)

SUMMARY_TEMPERATURE = 0.3


def is_first_chapter(db: Session, chapter: Chapter) -> bool:
    """True when no chapter of the same book has a smaller id.

    Ids are compared as strings, so "ch10" sorts before "ch2".
    """
    earlier = db.scalar(
        select(func.count(Chapter.id))
        .where(Chapter.book_id == chapter.book_id)
        .where(Chapter.id < chapter.id)
    )
    return not earlier


def _store_summary(db: Session, chapter_id: str, payload: SummaryPayload) -> ChapterSummary:
    with transaction(db):
        row = db.get(ChapterSummary, chapter_id)
        if row is None:
            row = ChapterSummary(chapter_id=chapter_id)
            db.add(row)
        else:
            row.created_at = func.now()
        row.pov = payload.pov
        row.characters = list(payload.characters)
        row.beats = list(payload.beats)
        row.spoilers_ok = payload.spoilers_ok
        row.summary = payload.summary
        db.flush()
    db.refresh(row)
    return row


async def generate_summary(
    db: Session, llm: LLMClient, viewer_id: int, chapter_id: str
) -> SummaryOut:
    """Summarize a chapter and store the result.

    Args:
        db: Database session.
        llm: Model client.
        viewer_id: The ID of the viewer.
        chapter_id: Chapter to summarize.

    Returns:
        The stored summary.

    Raises:
        NotFoundError(E_CHAPTER_NOT_FOUND): Chapter does not exist.
        ForbiddenError: Chapter belongs to another user's book.
        LLMError: The model failed or returned output that does not validate.
    """
    chapter, book = get_chapter_for_owner(db, viewer_id, chapter_id)
    set_content_context(book_id=book.id, chapter_id=chapter.id)

    messages = render_summary_prompt(
        book_id=book.id,
        book_title=book.title,
        chapter_id=chapter.id,
        chapter_title=chapter.title,
        chapter_text=chapter.text,
        is_first_chapter=is_first_chapter(db, chapter),
    )
    data = await llm.generate_json(
        messages, temperature=SUMMARY_TEMPERATURE, operation=LLMOperation.SUMMARY
    )

    try:
        payload = SummaryPayload.model_validate(data)
    except ValidationError as e:
        logger.warning("summary_output_invalid", error_count=e.error_count())
        raise LLMError(
            LLMErrorClass.INVALID_OUTPUT, "Model returned an invalid summary", provider="openai"
        ) from e

    row = _store_summary(db, chapter.id, payload)
    logger.info(
        "summary_stored",
        characters=len(payload.characters),
        beats=len(payload.beats),
    )

    await sync_wiki_from_summary(db, llm, book.id, chapter, payload)

    return SummaryOut.model_validate(row)
