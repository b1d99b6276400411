"""Chapter review generation and storage.

A review is keyed by (chapter, reviewer profile): regenerating with the same
profile overwrites the stored text and prompt instead of adding a row.
"""

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from betareader.auth.permissions import (
    get_book_for_owner,
    get_chapter_for_owner,
    get_review_for_owner,
)
from betareader.db.models import (
    AIProfile,
    Chapter,
    ChapterReview,
    ChapterSummary,
    CustomReviewerProfile,
)
from betareader.db.session import transaction
from betareader.errors import ApiErrorCode, InvalidRequestError
from betareader.logging import get_logger, set_content_context
from betareader.schemas.reviews import DEFAULT_TONE, CreateReviewRequest, ReviewOut
from betareader.services.llm import LLMClient, LLMOperation
from betareader.services.llm.prompt import PriorSummary, render_review_prompt, serialize_prompt
from betareader.services.profiles import CustomReviewer, Reviewer, resolve_reviewer
from betareader.services.redact import hash_text

logger = get_logger(__name__)

REVIEW_TEMPERATURE = 0.7


def _prior_summaries(db: Session, book_id: str, chapter_id: str) -> list[PriorSummary]:
    """Summaries of every other chapter in the book, by chapter id."""
    rows = db.execute(
        select(Chapter.id, Chapter.title, ChapterSummary.summary)
        .join(ChapterSummary, ChapterSummary.chapter_id == Chapter.id)
        .where(Chapter.book_id == book_id)
        .where(Chapter.id != chapter_id)
        .order_by(Chapter.id.asc())
    ).all()
    return [PriorSummary(chapter_id=cid, title=title, summary=s) for cid, title, s in rows]


def _review_out(review: ChapterReview, kind: str, name: str) -> ReviewOut:
    return ReviewOut(
        id=review.id,
        chapter_id=review.chapter_id,
        reviewer_kind=kind,
        reviewer_name=name,
        ai_profile_id=review.ai_profile_id,
        custom_profile_id=review.custom_profile_id,
        review_text=review.review_text,
        prompt_used=review.prompt_used,
        created_at=review.created_at,
        updated_at=review.updated_at,
    )


def _upsert_review(
    db: Session, chapter_id: str, reviewer: Reviewer, review_text: str, prompt_used: str
) -> ChapterReview:
    key = "custom_profile_id" if isinstance(reviewer, CustomReviewer) else "ai_profile_id"
    with transaction(db):
        db.execute(
            text(f"""
                INSERT INTO chapter_reviews
                    (chapter_id, ai_profile_id, custom_profile_id, review_text, prompt_used)
                VALUES (:chapter_id, :ai_profile_id, :custom_profile_id, :review_text, :prompt)
                ON CONFLICT (chapter_id, {key}) DO UPDATE SET
                    review_text = excluded.review_text,
                    prompt_used = excluded.prompt_used,
                    updated_at = CURRENT_TIMESTAMP
            """),
            {
                "chapter_id": chapter_id,
                "ai_profile_id": None if key == "custom_profile_id" else reviewer.profile_id,
                "custom_profile_id": reviewer.profile_id if key == "custom_profile_id" else None,
                "review_text": review_text,
                "prompt": prompt_used,
            },
        )

    review = db.scalars(
        select(ChapterReview)
        .where(ChapterReview.chapter_id == chapter_id)
        .where(getattr(ChapterReview, key) == reviewer.profile_id)
    ).one()
    db.refresh(review)
    return review


async def generate_review(
    db: Session, llm: LLMClient, viewer_id: int, req: CreateReviewRequest
) -> ReviewOut:
    """Generate (or regenerate) a review of a chapter.

    Raises:
        NotFoundError: Book, chapter or reviewer profile does not exist.
        ForbiddenError: Book belongs to another user.
        InvalidRequestError(E_CHAPTER_BOOK_MISMATCH): Chapter is not in the book.
        LLMError: The model failed or returned nothing.
    """
    book = get_book_for_owner(db, viewer_id, req.book_id)
    chapter, _ = get_chapter_for_owner(db, viewer_id, req.chapter_id)
    if chapter.book_id != book.id:
        raise InvalidRequestError(
            ApiErrorCode.E_CHAPTER_BOOK_MISMATCH, "Chapter belongs to a different book"
        )
    set_content_context(book_id=book.id, chapter_id=chapter.id)

    tone = req.tone
    if tone is None and req.custom_profile_id is None:
        tone = DEFAULT_TONE
    reviewer = resolve_reviewer(db, viewer_id, tone, req.custom_profile_id)

    prior = _prior_summaries(db, book.id, chapter.id)
    messages = render_review_prompt(
        reviewer.system_prompt, prior, chapter.id, chapter.title, chapter.text
    )
    response = await llm.generate(
        messages, temperature=REVIEW_TEMPERATURE, operation=LLMOperation.REVIEW
    )

    prompt_used = serialize_prompt(messages)
    review = _upsert_review(db, chapter.id, reviewer, response.text.strip(), prompt_used)
    kind = "custom" if isinstance(reviewer, CustomReviewer) else "ai"
    logger.info(
        "review_stored",
        review_id=review.id,
        reviewer_kind=kind,
        prior_summaries=len(prior),
        prompt_sha256=hash_text(prompt_used),
    )
    return _review_out(review, kind, reviewer.name)


def list_reviews(db: Session, viewer_id: int, chapter_id: str) -> list[ReviewOut]:
    """All reviews of a chapter, most recently updated first."""
    chapter, _ = get_chapter_for_owner(db, viewer_id, chapter_id)
    rows = db.execute(
        select(ChapterReview, AIProfile.name, CustomReviewerProfile.name)
        .outerjoin(AIProfile, AIProfile.id == ChapterReview.ai_profile_id)
        .outerjoin(
            CustomReviewerProfile, CustomReviewerProfile.id == ChapterReview.custom_profile_id
        )
        .where(ChapterReview.chapter_id == chapter.id)
        .order_by(ChapterReview.updated_at.desc(), ChapterReview.id.desc())
    ).all()
    return [
        _review_out(review, "ai", ai_name)
        if review.ai_profile_id is not None
        else _review_out(review, "custom", custom_name)
        for review, ai_name, custom_name in rows
    ]


def delete_review(db: Session, viewer_id: int, review_id: int) -> None:
    review = get_review_for_owner(db, viewer_id, review_id)
    with transaction(db):
        db.delete(review)
