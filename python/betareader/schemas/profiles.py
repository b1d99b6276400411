"""AI profile and custom reviewer profile schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AIProfileOut(BaseModel):
    """A reviewer persona. System profiles are shared and read-only."""

    id: int
    name: str
    tone_key: str
    system_prompt: str
    is_default: bool
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateAIProfileRequest(BaseModel):
    """Create a personal AI profile. A personal profile shadows the system
    profile with the same tone_key for its owner."""

    name: str = Field(..., min_length=1, max_length=100)
    tone_key: str = Field(..., min_length=1, max_length=50)
    system_prompt: str = Field(..., min_length=1)
    is_default: bool = False


class CustomProfileOut(BaseModel):
    id: int
    name: str
    description: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateCustomProfileRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)


class UpdateCustomProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1)
