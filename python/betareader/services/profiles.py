"""Reviewer profile service.

Two kinds of reviewer exist:
- AI profiles: a tone key plus a system prompt. System profiles are owned by
  the reserved ``system`` user, shared by everyone and read-only. A user may
  add personal profiles; a personal profile shadows the system profile with
  the same tone key for its owner.
- Custom reviewer profiles: a user-authored name and free-text persona.

A review references exactly one of them, represented here as the tagged
union ``Reviewer = SystemReviewer | CustomReviewer``.
"""

from dataclasses import dataclass

from sqlalchemy import or_, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from betareader.auth.permissions import get_ai_profile_for_owner, get_custom_profile_for_owner
from betareader.db.models import SYSTEM_USER_SUB, AIProfile, CustomReviewerProfile, User
from betareader.db.session import transaction
from betareader.errors import ApiErrorCode, ConflictError, NotFoundError
from betareader.logging import get_logger
from betareader.schemas.profiles import (
    AIProfileOut,
    CreateAIProfileRequest,
    CreateCustomProfileRequest,
    CustomProfileOut,
    UpdateCustomProfileRequest,
)
from betareader.services.llm.prompt import custom_reviewer_system_prompt

logger = get_logger(__name__)

# =============================================================================
# System profiles
# =============================================================================

SYSTEM_PROFILES: tuple[tuple[str, str, str], ...] = (
    (
        "Fanfic review style",
        "fanficnet",
        "You are a thoughtful, enthusiastic serial reader. React to THIS new chapter in "
        "context of prior summaries. 2–5 short paragraphs; warm, specific; reference "
        "arcs/payoffs; no spoilers beyond prior summaries.",
    ),
    (
        "Editorial Notes",
        "editorial",
        "You are a concise developmental editor. Give specific, actionable notes about "
        "structure, character, pacing, and continuity for THIS chapter in context.",
    ),
    (
        "Line Editor",
        "line-notes",
        "You are a line editor. Provide concrete line-level suggestions with examples.",
    ),
)


def seed_system_profiles(db: Session) -> int:
    """Ensure the system user and the built-in AI profiles exist.

    Idempotent. Returns the system user's id.
    """
    with transaction(db):
        db.execute(
            text("INSERT INTO users (auth0_sub) VALUES (:sub) ON CONFLICT (auth0_sub) DO NOTHING"),
            {"sub": SYSTEM_USER_SUB},
        )
        system_user_id = db.scalar(select(User.id).where(User.auth0_sub == SYSTEM_USER_SUB))
        for name, tone_key, prompt in SYSTEM_PROFILES:
            db.execute(
                text("""
                    INSERT INTO ai_profiles (user_id, name, tone_key, system_prompt, is_system)
                    VALUES (:user_id, :name, :tone_key, :prompt, :is_system)
                    ON CONFLICT (user_id, tone_key) DO NOTHING
                """),
                {
                    "user_id": system_user_id,
                    "name": name,
                    "tone_key": tone_key,
                    "prompt": prompt,
                    "is_system": True,
                },
            )
    return system_user_id


# =============================================================================
# Reviewer resolution
# =============================================================================


@dataclass(frozen=True)
class SystemReviewer:
    """A review written in the voice of an AI profile (system or personal)."""

    profile_id: int
    name: str
    system_prompt: str


@dataclass(frozen=True)
class CustomReviewer:
    """A review written in the voice of a user's custom persona."""

    profile_id: int
    name: str
    description: str

    @property
    def system_prompt(self) -> str:
        return custom_reviewer_system_prompt(self.name, self.description)


Reviewer = SystemReviewer | CustomReviewer


def resolve_reviewer(
    db: Session, viewer_id: int, tone: str | None, custom_profile_id: int | None
) -> Reviewer:
    """Pick the reviewer for a review request.

    Resolution order for a tone: the viewer's own AI profile, then the system
    profile. A custom profile must belong to the viewer.

    Raises:
        NotFoundError(E_PROFILE_NOT_FOUND): No matching profile.
    """
    if custom_profile_id is not None:
        profile = db.get(CustomReviewerProfile, custom_profile_id)
        if profile is None or profile.user_id != viewer_id:
            raise NotFoundError(ApiErrorCode.E_PROFILE_NOT_FOUND, "Custom profile not found")
        return CustomReviewer(
            profile_id=profile.id, name=profile.name, description=profile.description
        )

    profile = db.scalars(
        select(AIProfile)
        .join(User, User.id == AIProfile.user_id)
        .where(AIProfile.tone_key == tone)
        .where(or_(AIProfile.user_id == viewer_id, User.auth0_sub == SYSTEM_USER_SUB))
        # Personal profiles win over system ones.
        .order_by(AIProfile.is_system.asc(), AIProfile.id.asc())
    ).first()
    if profile is None:
        raise NotFoundError(
            ApiErrorCode.E_PROFILE_NOT_FOUND, f"No reviewer profile for tone '{tone}'"
        )
    return SystemReviewer(
        profile_id=profile.id, name=profile.name, system_prompt=profile.system_prompt
    )


# =============================================================================
# AI profiles
# =============================================================================


def list_ai_profiles(db: Session, viewer_id: int) -> list[AIProfileOut]:
    """List system profiles followed by the viewer's own, each by name."""
    profiles = db.scalars(
        select(AIProfile)
        .where(or_(AIProfile.is_system.is_(True), AIProfile.user_id == viewer_id))
        .order_by(AIProfile.is_system.desc(), AIProfile.name.asc(), AIProfile.id.asc())
    ).all()
    return [AIProfileOut.model_validate(p) for p in profiles]


def create_ai_profile(db: Session, viewer_id: int, req: CreateAIProfileRequest) -> AIProfileOut:
    """Create a personal AI profile.

    Raises:
        ConflictError: The viewer already has a profile with this tone key.
    """
    profile = AIProfile(
        user_id=viewer_id,
        name=req.name,
        tone_key=req.tone_key,
        system_prompt=req.system_prompt,
        is_default=req.is_default,
        is_system=False,
    )
    try:
        with transaction(db):
            db.add(profile)
            db.flush()
    except IntegrityError as e:
        raise ConflictError(message=f"A profile for tone '{req.tone_key}' already exists") from e

    db.refresh(profile)
    logger.info("ai_profile_created", profile_id=profile.id, tone_key=profile.tone_key)
    return AIProfileOut.model_validate(profile)


def delete_ai_profile(db: Session, viewer_id: int, profile_id: int) -> None:
    """Delete a personal AI profile. System profiles are read-only (403)."""
    profile = get_ai_profile_for_owner(db, viewer_id, profile_id)
    with transaction(db):
        db.delete(profile)


# =============================================================================
# Custom reviewer profiles
# =============================================================================


def list_custom_profiles(db: Session, viewer_id: int) -> list[CustomProfileOut]:
    profiles = db.scalars(
        select(CustomReviewerProfile)
        .where(CustomReviewerProfile.user_id == viewer_id)
        .order_by(CustomReviewerProfile.name.asc())
    ).all()
    return [CustomProfileOut.model_validate(p) for p in profiles]


def create_custom_profile(
    db: Session, viewer_id: int, req: CreateCustomProfileRequest
) -> CustomProfileOut:
    """Create a custom reviewer persona. Names are unique per user (409)."""
    profile = CustomReviewerProfile(
        user_id=viewer_id, name=req.name.strip(), description=req.description
    )
    try:
        with transaction(db):
            db.add(profile)
            db.flush()
    except IntegrityError as e:
        raise ConflictError(message=f"A profile named '{req.name}' already exists") from e

    db.refresh(profile)
    return CustomProfileOut.model_validate(profile)


def update_custom_profile(
    db: Session, viewer_id: int, profile_id: int, req: UpdateCustomProfileRequest
) -> CustomProfileOut:
    profile = get_custom_profile_for_owner(db, viewer_id, profile_id)
    try:
        with transaction(db):
            if req.name is not None:
                profile.name = req.name.strip()
            if req.description is not None:
                profile.description = req.description
            db.flush()
    except IntegrityError as e:
        raise ConflictError(message=f"A profile named '{req.name}' already exists") from e

    db.refresh(profile)
    return CustomProfileOut.model_validate(profile)


def delete_custom_profile(db: Session, viewer_id: int, profile_id: int) -> None:
    """Delete a custom profile; its reviews cascade."""
    profile = get_custom_profile_for_owner(db, viewer_id, profile_id)
    with transaction(db):
        db.delete(profile)
