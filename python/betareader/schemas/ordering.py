"""Schemas for chapter ordering and book parts."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Key in ReorderChaptersRequest.part_orders for chapters outside any part.
UNASSIGNED_PART_KEY = "none"


class PartOut(BaseModel):
    """Response schema for a book part."""

    id: int
    book_id: str
    name: str
    chapter_order: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreatePartRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class RenamePartRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class MoveChapterRequest(BaseModel):
    """Move a chapter within the book order and/or between parts.

    part_id is tri-state: omitted leaves the part unchanged, null removes the
    chapter from its part, an integer moves it into that part.

    position_in_part is 1-based and clamped; omitted appends to the part.
    position is the 0-based target index in the book order, clamped.
    """

    part_id: int | None = None
    position_in_part: int | None = Field(default=None, ge=1)
    position: int | None = Field(default=None, ge=0)

    @property
    def moves_part(self) -> bool:
        return "part_id" in self.model_fields_set


class ReorderChaptersRequest(BaseModel):
    """Replace the whole book order and any number of part orders at once.

    part_orders maps a part id (as a string) or "none" to the full ordered
    list of chapter ids for that part.
    """

    chapter_order: list[str]
    part_orders: dict[str, list[str]] = Field(default_factory=dict)


class ChapterPositionOut(BaseModel):
    """Where a chapter sits after a move."""

    chapter_id: str
    part_id: int | None
    position: int
    part_position: int | None
    chapter_order: list[str]


class BookOrderOut(BaseModel):
    """Book order and every part order after a batch reorder."""

    book_id: str
    chapter_order: list[str]
    parts: list[PartOut]
