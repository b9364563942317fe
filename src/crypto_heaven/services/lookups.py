"""Lookup helpers shared by the service modules."""

from __future__ import annotations

from sqlalchemy.orm import Session

from crypto_heaven.models import Community, User

from .errors import NotFoundError


def find_user(db: Session, user_id: str) -> User | None:
    """Return a user by the identity provider's id."""
    return db.query(User).filter(User.external_id == user_id).first()


def require_user(db: Session, user_id: str, label: str = "User") -> User:
    user = find_user(db, user_id)
    if user is None:
        raise NotFoundError(f"{label} not found")
    return user


def find_community(db: Session, community_id: str) -> Community | None:
    """Return a community by its external id."""
    return db.query(Community).filter(Community.external_id == community_id).first()


def require_community(db: Session, community_id: str) -> Community:
    community = find_community(db, community_id)
    if community is None:
        raise NotFoundError("Community not found")
    return community


def parse_object_id(raw: str | int | None) -> int | None:
    """Turn a serialized message/thread id back into a primary key.

    Returns None for anything that is not a positive integer.
    """
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None
