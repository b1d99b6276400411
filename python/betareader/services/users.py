"""User resolution and profile service.

Users are created lazily: the first request carrying a verified token for an
unknown subject inserts the row. Inserts are race-safe (ON CONFLICT DO
NOTHING followed by a re-read), so concurrent first requests converge on one
row.
"""

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from betareader.auth.middleware import Viewer
from betareader.auth.verifier import VerifiedIdentity
from betareader.db.models import User
from betareader.db.session import transaction
from betareader.errors import ApiErrorCode, NotFoundError
from betareader.logging import get_logger
from betareader.schemas.users import UpdateProfileRequest, UserOut

logger = get_logger(__name__)


def get_user_by_sub(db: Session, sub: str) -> User | None:
    return db.scalars(select(User).where(User.auth0_sub == sub)).first()


def resolve_user(db: Session, identity: VerifiedIdentity) -> User:
    """Look up the user for a verified identity, creating it on first sight.

    Args:
        db: Database session.
        identity: Claims from the verified token.

    Returns:
        The persisted User row.
    """
    user = get_user_by_sub(db, identity.sub)
    if user is not None:
        return user

    with transaction(db):
        db.execute(
            text("""
                INSERT INTO users (auth0_sub, email, email_verified, username, name)
                VALUES (:sub, :email, :email_verified, :username, :name)
                ON CONFLICT (auth0_sub) DO NOTHING
            """),
            {
                "sub": identity.sub,
                "email": identity.email,
                "email_verified": identity.email_verified,
                "username": identity.username,
                "name": identity.name,
            },
        )

    user = get_user_by_sub(db, identity.sub)
    if user is None:
        # Insert was a no-op and the row is still missing; should not happen.
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User profile not found")

    logger.info("user_created", user_id=user.id)
    return user


def viewer_for_user(user: User, identity: VerifiedIdentity) -> Viewer:
    """Build the request Viewer from the stored user and the token claims."""
    return Viewer(
        user_id=user.id,
        sub=user.auth0_sub,
        email=identity.email or user.email,
        email_verified=identity.email_verified,
        username=user.username,
    )


def upsert_profile(
    db: Session, identity: VerifiedIdentity, req: UpdateProfileRequest
) -> UserOut:
    """Create or refresh the caller's profile from token claims.

    username and name from the request override the corresponding claims.
    """
    with transaction(db):
        db.execute(
            text("""
                INSERT INTO users (auth0_sub, email, email_verified, username, name)
                VALUES (:sub, :email, :email_verified, :username, :name)
                ON CONFLICT (auth0_sub) DO UPDATE SET
                    email = excluded.email,
                    email_verified = excluded.email_verified,
                    username = excluded.username,
                    name = excluded.name,
                    updated_at = CURRENT_TIMESTAMP
            """),
            {
                "sub": identity.sub,
                "email": identity.email,
                "email_verified": identity.email_verified,
                "username": req.username if req.username is not None else identity.username,
                "name": req.name if req.name is not None else identity.name,
            },
        )

    user = get_user_by_sub(db, identity.sub)
    # The session may hold a stale copy from resolve_user.
    db.refresh(user)
    return UserOut.model_validate(user)


def get_me(db: Session, viewer_id: int) -> UserOut:
    user = db.get(User, viewer_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User profile not found")
    return UserOut.model_validate(user)
