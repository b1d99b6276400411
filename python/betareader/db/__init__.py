"""Database module.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from betareader.db.engine import create_db_engine, get_engine
from betareader.db.models import (
    AIProfile,
    Base,
    Book,
    BookCharacter,
    BookPart,
    Chapter,
    ChapterReview,
    ChapterSummary,
    ChapterWikiMention,
    CustomReviewerProfile,
    User,
    WikiPage,
    WikiPageType,
    WikiUpdate,
    WikiUpdateType,
)
from betareader.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "WikiPageType",
    "WikiUpdateType",
    # Models
    "User",
    "Book",
    "BookPart",
    "Chapter",
    "ChapterSummary",
    "AIProfile",
    "CustomReviewerProfile",
    "ChapterReview",
    "WikiPage",
    "WikiUpdate",
    "ChapterWikiMention",
    "BookCharacter",
]
