"""CRUD-style helpers for managing user profiles."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from crypto_heaven.models import Community, CommunityMember, User
from crypto_heaven.schemas.community import CommunitySummary
from crypto_heaven.schemas.user import UserProfile, UserProfileUpdate

from .errors import ConflictError, service_operation
from .lookups import find_user, require_user

__all__ = [
    "upsert_user",
    "fetch_user",
    "user_communities",
]

logger = logging.getLogger(__name__)


def upsert_user(db: Session, user_id: str, profile: UserProfileUpdate) -> User:
    """Create or update the profile for an identity-provider account.

    Called during onboarding; marks the profile as onboarded.
    """
    with service_operation(db, "create/update user"):
        taken = (
            db.query(User)
            .filter(User.username == profile.username, User.external_id != user_id)
            .first()
        )
        if taken is not None:
            raise ConflictError("Username already taken. Please choose another one.")

        user = find_user(db, user_id)
        if user is None:
            user = User(external_id=user_id, username=profile.username)
            db.add(user)
            logger.info("Creating profile for user %s", user_id)

        update_dict = profile.model_dump(exclude_unset=True)
        for key, value in update_dict.items():
            setattr(user, key, value)
        user.onboarded = True

        db.commit()
        db.refresh(user)
        return user


def user_communities(db: Session, user: User) -> list[Community]:
    """Return the communities ``user`` is a member of, oldest membership first."""
    return (
        db.query(Community)
        .join(CommunityMember, CommunityMember.community_id == Community.id)
        .filter(CommunityMember.user_id == user.id)
        .order_by(CommunityMember.joined_at)
        .all()
    )


def fetch_user(db: Session, user_id: str) -> UserProfile:
    """Return a user's public profile together with their communities."""
    with service_operation(db, "fetch user"):
        user = require_user(db, user_id)
        return UserProfile(
            id=user.external_id,
            name=user.name,
            username=user.username,
            image=user.image,
            bio=user.bio,
            onboarded=user.onboarded,
            communities=[
                CommunitySummary(
                    id=community.external_id,
                    name=community.name,
                    username=community.username,
                    image=community.image,
                )
                for community in user_communities(db, user)
            ],
        )
