"""User profile schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserOut(BaseModel):
    """Response schema for the current user."""

    id: int
    auth0_sub: str
    email: str | None
    email_verified: bool
    username: str | None
    name: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UpdateProfileRequest(BaseModel):
    """Optional overrides applied on top of the token claims."""

    username: str | None = Field(default=None, max_length=100)
    name: str | None = Field(default=None, max_length=200)
