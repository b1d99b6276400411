"""SQLAlchemy ORM models for the beta reader.

Defines all tables using SQLAlchemy 2.x declarative patterns. Column types are
PostgreSQL-first (TEXT[] and JSONB) with JSON variants so the same metadata can
build a throwaway SQLite schema for tests.

Array columns are always reassigned, never mutated in place, so the ORM picks
up the change.
"""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    false,
    func,
    true,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

TextArray = ARRAY(Text).with_variant(JSON(), "sqlite")
JsonList = JSONB().with_variant(JSON(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _created_at() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


def _updated_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# =============================================================================
# Enums
# =============================================================================


class WikiPageType(str, PyEnum):
    """Kinds of wiki page."""

    character = "character"
    location = "location"
    concept = "concept"
    other = "other"


class WikiUpdateType(str, PyEnum):
    """Kinds of entry in the wiki audit log."""

    created = "created"
    updated = "updated"
    contradiction_noted = "contradiction_noted"
    manual_edit = "manual_edit"


# =============================================================================
# Identity
# =============================================================================


SYSTEM_USER_SUB = "system"


class User(Base):
    """User account, keyed internally by serial id and externally by auth0_sub.

    Rows are created lazily the first time a verified token is seen. The
    reserved ``system`` subject owns the shared AI profiles.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auth0_sub: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


# =============================================================================
# Content
# =============================================================================


class Book(Base):
    """A book owned by one user. ``chapter_order`` is the canonical order."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    chapter_order: Mapped[list[str]] = mapped_column(TextArray, default=list, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class BookPart(Base):
    """A named grouping of chapters inside a book, with its own order."""

    __tablename__ = "book_parts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[str] = mapped_column(
        Text, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    chapter_order: Mapped[list[str]] = mapped_column(TextArray, default=list, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class Chapter(Base):
    """A chapter of a book. ``word_count`` is derived from ``text`` on write."""

    __tablename__ = "chapters"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    book_id: Mapped[str] = mapped_column(
        Text, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    part_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("book_parts.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class ChapterSummary(Base):
    """Structured summary of a chapter; at most one per chapter."""

    __tablename__ = "chapter_summaries"

    chapter_id: Mapped[str] = mapped_column(
        Text, ForeignKey("chapters.id", ondelete="CASCADE"), primary_key=True
    )
    pov: Mapped[str | None] = mapped_column(Text, nullable=True)
    characters: Mapped[list[str]] = mapped_column(JsonList, default=list, nullable=False)
    beats: Mapped[list[str]] = mapped_column(JsonList, default=list, nullable=False)
    spoilers_ok: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true(), nullable=False
    )
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()


# =============================================================================
# Reviewer profiles and reviews
# =============================================================================


class AIProfile(Base):
    """A reviewer persona: a tone key plus the system prompt sent to the model."""

    __tablename__ = "ai_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    tone_key: Mapped[str] = mapped_column(Text, nullable=False)
    system_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    is_default: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    is_system: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (UniqueConstraint("user_id", "tone_key", name="uix_ai_profiles_user_tone"),)


class CustomReviewerProfile(Base):
    """A user-authored reviewer persona described in free text."""

    __tablename__ = "custom_reviewer_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        CheckConstraint("length(name) BETWEEN 1 AND 100", name="ck_custom_profiles_name_length"),
        UniqueConstraint("user_id", "name", name="uix_custom_profiles_user_name"),
    )


class ChapterReview(Base):
    """A generated review of a chapter by exactly one reviewer profile."""

    __tablename__ = "chapter_reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chapter_id: Mapped[str] = mapped_column(
        Text, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False
    )
    ai_profile_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("ai_profiles.id", ondelete="CASCADE"), nullable=True
    )
    custom_profile_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("custom_reviewer_profiles.id", ondelete="CASCADE"), nullable=True
    )
    review_text: Mapped[str] = mapped_column(Text, nullable=False)
    prompt_used: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        CheckConstraint(
            "(ai_profile_id IS NOT NULL AND custom_profile_id IS NULL) OR "
            "(ai_profile_id IS NULL AND custom_profile_id IS NOT NULL)",
            name="ck_chapter_reviews_one_profile",
        ),
        UniqueConstraint("chapter_id", "ai_profile_id", name="uix_chapter_reviews_ai_profile"),
        UniqueConstraint(
            "chapter_id", "custom_profile_id", name="uix_chapter_reviews_custom_profile"
        ),
    )


# =============================================================================
# Wiki
# =============================================================================


class WikiPage(Base):
    """A wiki entry about a character, location or concept in one book."""

    __tablename__ = "wiki_pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[str] = mapped_column(
        Text, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    page_name: Mapped[str] = mapped_column(Text, nullable=False)
    page_type: Mapped[str] = mapped_column(
        Text, default=WikiPageType.character.value, server_default="character", nullable=False
    )
    content: Mapped[str] = mapped_column(Text, default="", server_default="", nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    aliases: Mapped[list[str]] = mapped_column(JsonList, default=list, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JsonList, default=list, nullable=False)
    is_major: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    created_by_ai: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        CheckConstraint(
            "page_type IN ('character', 'location', 'concept', 'other')",
            name="ck_wiki_pages_page_type",
        ),
        UniqueConstraint("book_id", "page_name", name="uix_wiki_pages_book_name"),
    )


class WikiUpdate(Base):
    """Append-only audit entry for a wiki page. Never updated after insert."""

    __tablename__ = "wiki_updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wiki_page_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wiki_pages.id", ondelete="CASCADE"), nullable=False
    )
    chapter_id: Mapped[str | None] = mapped_column(
        Text, ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True
    )
    update_type: Mapped[str] = mapped_column(Text, nullable=False)
    previous_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    contradiction_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (
        CheckConstraint(
            "update_type IN ('created', 'updated', 'contradiction_noted', 'manual_edit')",
            name="ck_wiki_updates_update_type",
        ),
    )


class ChapterWikiMention(Base):
    """Link between a chapter and a wiki page it mentions."""

    __tablename__ = "chapter_wiki_mentions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chapter_id: Mapped[str] = mapped_column(
        Text, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False
    )
    wiki_page_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wiki_pages.id", ondelete="CASCADE"), nullable=False
    )
    mention_context: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_primary: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (
        UniqueConstraint("chapter_id", "wiki_page_id", name="uix_chapter_wiki_mentions"),
    )


class BookCharacter(Base):
    """Roster entry counting how many chapter summaries named a character."""

    __tablename__ = "book_characters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[str] = mapped_column(
        Text, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    character_name: Mapped[str] = mapped_column(Text, nullable=False)
    first_mentioned_chapter: Mapped[str | None] = mapped_column(
        Text, ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True
    )
    mention_count: Mapped[int] = mapped_column(
        Integer, default=1, server_default="1", nullable=False
    )
    has_wiki_page: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    wiki_page_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("wiki_pages.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        UniqueConstraint("book_id", "character_name", name="uix_book_characters_book_name"),
    )
