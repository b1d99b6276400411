"""Wiki page, audit log, mention and roster schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Valid page types - must match DB constraint
WIKI_PAGE_TYPES = Literal["character", "location", "concept", "other"]

# Fields find-and-replace may touch
REPLACEABLE_FIELDS = Literal["content", "summary", "page_name"]


# =============================================================================
# Output Schemas
# =============================================================================


class WikiPageOut(BaseModel):
    """Response schema for a wiki page."""

    id: int
    book_id: str
    page_name: str
    page_type: str
    content: str
    summary: str | None
    aliases: list[str]
    tags: list[str]
    is_major: bool
    created_by_ai: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WikiUpdateOut(BaseModel):
    """One audit log entry for a wiki page."""

    id: int
    wiki_page_id: int
    chapter_id: str | None
    update_type: str
    previous_content: str | None
    new_content: str | None
    change_summary: str | None
    contradiction_notes: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WikiMentionOut(BaseModel):
    """A chapter that mentions a wiki page."""

    chapter_id: str
    chapter_title: str | None
    mention_context: str | None
    is_primary: bool
    created_at: datetime


class BookCharacterOut(BaseModel):
    """A roster entry for a character named in chapter summaries."""

    id: int
    book_id: str
    character_name: str
    first_mentioned_chapter: str | None
    mention_count: int
    has_wiki_page: bool
    wiki_page_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FindReplaceOut(BaseModel):
    page: WikiPageOut
    replacements: int


# =============================================================================
# Request Schemas
# =============================================================================


class CreateWikiPageRequest(BaseModel):
    """Create a page by hand. Omitted fields take the usual defaults."""

    page_name: str = Field(..., min_length=1, max_length=200)
    page_type: WIKI_PAGE_TYPES = "character"
    content: str = ""
    summary: str | None = None
    aliases: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_major: bool = False


class UpdateWikiPageRequest(BaseModel):
    """Partial update; only fields present in the body are written."""

    page_name: str | None = Field(default=None, min_length=1, max_length=200)
    page_type: WIKI_PAGE_TYPES | None = None
    content: str | None = None
    summary: str | None = None
    aliases: list[str] | None = None
    tags: list[str] | None = None
    is_major: bool | None = None


class FindReplaceRequest(BaseModel):
    """Case-insensitive literal find-and-replace over selected page fields."""

    search: str = Field(..., min_length=1)
    replace: str
    fields: list[REPLACEABLE_FIELDS] = Field(
        default_factory=lambda: ["content", "summary", "page_name"], min_length=1
    )
