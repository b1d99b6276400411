"""Chapter and chapter summary schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SummaryOut(BaseModel):
    """Stored structured summary of a chapter."""

    chapter_id: str
    pov: str | None
    characters: list[str]
    beats: list[str]
    spoilers_ok: bool
    summary: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChapterOut(BaseModel):
    """Response schema for a chapter, including its text."""

    id: str
    book_id: str
    part_id: int | None
    title: str | None
    text: str
    word_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChapterDetailOut(ChapterOut):
    """A chapter together with its latest summary, if one exists."""

    summary: SummaryOut | None = None


class ChapterUpsertOut(BaseModel):
    chapter: ChapterOut
    word_count: int


class ChapterListItemOut(BaseModel):
    """A chapter row in book order, without its text.

    position is the 0-based index in the book order; part_position is the
    0-based index in its part's order, or None when the chapter has no part.
    """

    id: str
    title: str | None
    word_count: int
    has_summary: bool
    part_id: int | None
    part_name: str | None
    position: int
    part_position: int | None
    updated_at: datetime


class UpsertChapterRequest(BaseModel):
    """Create or replace a chapter. Ids are chosen by the client."""

    id: str = Field(..., min_length=1, max_length=200)
    book_id: str = Field(..., min_length=1)
    title: str | None = None
    text: str
