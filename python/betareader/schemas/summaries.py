"""Validated shapes of language-model JSON output.

The model is asked for a fixed JSON shape; these schemas are the boundary
between untrusted model output and the database.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


def _as_name_list(value: Any) -> list[str]:
    """Accept ["Ann", {"name": "Bob"}, ...] and return clean, de-duplicated names."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("expected a list")

    names: list[str] = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("name")
        if not isinstance(item, str):
            continue
        name = item.strip()
        if name and name not in names:
            names.append(name)
    return names


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("expected a list")
    return [str(item).strip() for item in value if str(item).strip()]


class SummaryPayload(BaseModel):
    """Summary JSON: {pov, characters[], beats[], spoilers_ok, summary}.

    At least four beats are requested in the prompt but fewer are accepted.
    """

    pov: str | None = None
    characters: list[str] = Field(default_factory=list)
    beats: list[str] = Field(default_factory=list)
    spoilers_ok: bool = False
    summary: str = Field(..., min_length=1)

    @field_validator("characters", mode="before")
    @classmethod
    def normalize_characters(cls, v: Any) -> list[str]:
        return _as_name_list(v)

    @field_validator("beats", mode="before")
    @classmethod
    def normalize_beats(cls, v: Any) -> list[str]:
        return _as_str_list(v)

    @field_validator("pov", mode="before")
    @classmethod
    def normalize_pov(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v).strip() or None


class WikiProfilePayload(BaseModel):
    """New character page JSON."""

    content: str = Field(..., min_length=1)
    summary: str | None = None
    aliases: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_major: bool = False

    @field_validator("aliases", "tags", mode="before")
    @classmethod
    def normalize_lists(cls, v: Any) -> list[str]:
        return _as_str_list(v)


class WikiReconcilePayload(BaseModel):
    """Reconciliation JSON for an existing page."""

    has_changes: bool = False
    updated_content: str | None = None
    updated_summary: str | None = None
    contradictions: str | None = None
    change_summary: str | None = None

    @field_validator("contradictions", mode="before")
    @classmethod
    def normalize_contradictions(cls, v: Any) -> str | None:
        if v is None:
            return None
        if isinstance(v, list):
            v = "\n".join(str(item) for item in v if item)
        return str(v).strip() or None
