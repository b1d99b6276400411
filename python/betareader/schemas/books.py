"""Book schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BookOut(BaseModel):
    """Response schema for a book."""

    id: str
    title: str
    chapter_order: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookListItemOut(BookOut):
    """A book with aggregate chapter stats, as returned by the book list."""

    chapter_count: int
    total_word_count: int


class UpsertBookRequest(BaseModel):
    """Create a book, or rename one the caller already owns.

    The id is chosen by the client.
    """

    id: str = Field(..., min_length=1, max_length=200)
    title: str = Field(..., min_length=1)
