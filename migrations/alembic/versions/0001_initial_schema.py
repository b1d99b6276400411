"""Initial schema - users, books, parts, chapters, summaries, reviews, wiki

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates every table of the beta reader and seeds the reserved system user
with the built-in reviewer profiles.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from betareader.db.models import SYSTEM_USER_SUB
from betareader.services.profiles import SYSTEM_PROFILES

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("auth0_sub", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("email_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("auth0_sub"),
    )

    # ==========================================================================
    # books and parts
    # ==========================================================================
    op.create_table(
        "books",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column(
            "chapter_order",
            postgresql.ARRAY(sa.Text()),
            server_default=sa.text("'{}'::text[]"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_books_user_id", "books", ["user_id"])

    op.create_table(
        "book_parts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("book_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "chapter_order",
            postgresql.ARRAY(sa.Text()),
            server_default=sa.text("'{}'::text[]"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_book_parts_book_id", "book_parts", ["book_id"])

    # ==========================================================================
    # chapters and summaries
    # ==========================================================================
    op.create_table(
        "chapters",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("book_id", sa.Text(), nullable=False),
        sa.Column("part_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("word_count", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["part_id"], ["book_parts.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_chapters_book_id", "chapters", ["book_id"])
    op.create_index("idx_chapters_part_id", "chapters", ["part_id"])

    op.create_table(
        "chapter_summaries",
        sa.Column("chapter_id", sa.Text(), nullable=False),
        sa.Column("pov", sa.Text(), nullable=True),
        sa.Column(
            "characters",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "beats",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("spoilers_ok", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("chapter_id"),
        sa.ForeignKeyConstraint(["chapter_id"], ["chapters.id"], ondelete="CASCADE"),
    )

    # ==========================================================================
    # reviewer profiles and reviews
    # ==========================================================================
    op.create_table(
        "ai_profiles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("tone_key", sa.Text(), nullable=False),
        sa.Column("system_prompt", sa.Text(), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_system", sa.Boolean(), server_default="false", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "tone_key", name="uix_ai_profiles_user_tone"),
    )

    op.create_table(
        "custom_reviewer_profiles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        # Constraint: name must be 1-100 characters
        sa.CheckConstraint(
            "length(name) BETWEEN 1 AND 100", name="ck_custom_profiles_name_length"
        ),
        sa.UniqueConstraint("user_id", "name", name="uix_custom_profiles_user_name"),
    )

    op.create_table(
        "chapter_reviews",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("chapter_id", sa.Text(), nullable=False),
        sa.Column("ai_profile_id", sa.Integer(), nullable=True),
        sa.Column("custom_profile_id", sa.Integer(), nullable=True),
        sa.Column("review_text", sa.Text(), nullable=False),
        sa.Column("prompt_used", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["chapter_id"], ["chapters.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ai_profile_id"], ["ai_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["custom_profile_id"], ["custom_reviewer_profiles.id"], ondelete="CASCADE"
        ),
        # Constraint: exactly one reviewer profile
        sa.CheckConstraint(
            "(ai_profile_id IS NOT NULL AND custom_profile_id IS NULL) OR "
            "(ai_profile_id IS NULL AND custom_profile_id IS NOT NULL)",
            name="ck_chapter_reviews_one_profile",
        ),
        sa.UniqueConstraint("chapter_id", "ai_profile_id", name="uix_chapter_reviews_ai_profile"),
        sa.UniqueConstraint(
            "chapter_id", "custom_profile_id", name="uix_chapter_reviews_custom_profile"
        ),
    )

    # ==========================================================================
    # wiki
    # ==========================================================================
    op.create_table(
        "wiki_pages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("book_id", sa.Text(), nullable=False),
        sa.Column("page_name", sa.Text(), nullable=False),
        sa.Column("page_type", sa.Text(), server_default="character", nullable=False),
        sa.Column("content", sa.Text(), server_default="", nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column(
            "aliases", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False
        ),
        sa.Column(
            "tags", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False
        ),
        sa.Column("is_major", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_by_ai", sa.Boolean(), server_default="false", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "page_type IN ('character', 'location', 'concept', 'other')",
            name="ck_wiki_pages_page_type",
        ),
        sa.UniqueConstraint("book_id", "page_name", name="uix_wiki_pages_book_name"),
    )

    op.create_table(
        "wiki_updates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wiki_page_id", sa.Integer(), nullable=False),
        sa.Column("chapter_id", sa.Text(), nullable=True),
        sa.Column("update_type", sa.Text(), nullable=False),
        sa.Column("previous_content", sa.Text(), nullable=True),
        sa.Column("new_content", sa.Text(), nullable=True),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("contradiction_notes", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["wiki_page_id"], ["wiki_pages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["chapter_id"], ["chapters.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "update_type IN ('created', 'updated', 'contradiction_noted', 'manual_edit')",
            name="ck_wiki_updates_update_type",
        ),
    )
    op.create_index(
        "idx_wiki_updates_page_created", "wiki_updates", ["wiki_page_id", "created_at"]
    )

    op.create_table(
        "chapter_wiki_mentions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("chapter_id", sa.Text(), nullable=False),
        sa.Column("wiki_page_id", sa.Integer(), nullable=False),
        sa.Column("mention_context", sa.Text(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), server_default="false", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["chapter_id"], ["chapters.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["wiki_page_id"], ["wiki_pages.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("chapter_id", "wiki_page_id", name="uix_chapter_wiki_mentions"),
    )

    op.create_table(
        "book_characters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("book_id", sa.Text(), nullable=False),
        sa.Column("character_name", sa.Text(), nullable=False),
        sa.Column("first_mentioned_chapter", sa.Text(), nullable=True),
        sa.Column("mention_count", sa.Integer(), server_default="1", nullable=False),
        sa.Column("has_wiki_page", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("wiki_page_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["first_mentioned_chapter"], ["chapters.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["wiki_page_id"], ["wiki_pages.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("book_id", "character_name", name="uix_book_characters_book_name"),
    )

    # ==========================================================================
    # seed: system user and built-in reviewer profiles
    # ==========================================================================
    conn = op.get_bind()
    conn.execute(
        sa.text("INSERT INTO users (auth0_sub) VALUES (:sub) ON CONFLICT DO NOTHING"),
        {"sub": SYSTEM_USER_SUB},
    )
    for name, tone_key, prompt in SYSTEM_PROFILES:
        conn.execute(
            sa.text("""
                INSERT INTO ai_profiles (user_id, name, tone_key, system_prompt, is_system)
                SELECT id, :name, :tone_key, :prompt, true FROM users WHERE auth0_sub = :sub
                ON CONFLICT (user_id, tone_key) DO NOTHING
            """),
            {"name": name, "tone_key": tone_key, "prompt": prompt, "sub": SYSTEM_USER_SUB},
        )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("book_characters")
    op.drop_table("chapter_wiki_mentions")
    op.drop_index("idx_wiki_updates_page_created", table_name="wiki_updates")
    op.drop_table("wiki_updates")
    op.drop_table("wiki_pages")
    op.drop_table("chapter_reviews")
    op.drop_table("custom_reviewer_profiles")
    op.drop_table("ai_profiles")
    op.drop_table("chapter_summaries")
    op.drop_index("idx_chapters_part_id", table_name="chapters")
    op.drop_index("idx_chapters_book_id", table_name="chapters")
    op.drop_table("chapters")
    op.drop_index("idx_book_parts_book_id", table_name="book_parts")
    op.drop_table("book_parts")
    op.drop_index("idx_books_user_id", table_name="books")
    op.drop_table("books")
    op.drop_table("users")
