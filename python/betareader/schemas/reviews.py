"""Review schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

DEFAULT_TONE = "fanficnet"


class CreateReviewRequest(BaseModel):
    """Generate (or regenerate) a review of one chapter.

    Select the reviewer either by tone (built-in or personal AI profile) or
    by custom_profile_id, never both. With neither, the default tone is used.
    """

    book_id: str = Field(..., min_length=1)
    chapter_id: str = Field(..., min_length=1)
    tone: str | None = Field(default=None, min_length=1)
    custom_profile_id: int | None = None

    @model_validator(mode="after")
    def check_single_reviewer(self) -> "CreateReviewRequest":
        if self.tone is not None and self.custom_profile_id is not None:
            raise ValueError("Specify either tone or custom_profile_id, not both")
        return self


class ReviewOut(BaseModel):
    """A stored review. Exactly one of ai_profile_id / custom_profile_id is set."""

    id: int
    chapter_id: str
    reviewer_kind: Literal["ai", "custom"]
    reviewer_name: str
    ai_profile_id: int | None
    custom_profile_id: int | None
    review_text: str
    prompt_used: str | None
    created_at: datetime
    updated_at: datetime
