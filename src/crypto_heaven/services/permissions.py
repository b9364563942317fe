"""Centralized capability checks for community operations."""

from __future__ import annotations

from enum import Enum

from sqlalchemy.orm import Session

from crypto_heaven.models import (
    Community,
    CommunityAdmin,
    CommunityJoinRequest,
    CommunityMember,
    User,
)

from .errors import UnauthorizedError


class CommunityRole(str, Enum):
    """Relationship between a user and a community, weakest first."""

    NONE = "none"
    REQUESTED = "requested"
    MEMBER = "member"
    ADMIN = "admin"
    CREATOR = "creator"


def get_community_role(db: Session, community: Community, user: User) -> CommunityRole:
    """Return the strongest role ``user`` holds in ``community``."""
    if community.created_by_id == user.id:
        return CommunityRole.CREATOR

    is_admin = db.get(CommunityAdmin, (community.id, user.id)) is not None
    if is_admin:
        return CommunityRole.ADMIN

    if db.get(CommunityMember, (community.id, user.id)) is not None:
        return CommunityRole.MEMBER

    if db.get(CommunityJoinRequest, (community.id, user.id)) is not None:
        return CommunityRole.REQUESTED

    return CommunityRole.NONE


def can_manage_requests(role: CommunityRole) -> bool:
    """Admins and the creator may approve, reject and manage members."""
    return role in (CommunityRole.ADMIN, CommunityRole.CREATOR)


def is_creator(role: CommunityRole) -> bool:
    return role is CommunityRole.CREATOR


def is_member(db: Session, community: Community, user: User) -> bool:
    """Return True when ``user`` appears in the community's member set.

    Admin and creator rights do not imply membership: a creator who left
    the community can no longer post to its chat.
    """
    return db.get(CommunityMember, (community.id, user.id)) is not None


def require_manager(db: Session, community: Community, actor: User, action: str) -> CommunityRole:
    """Raise ``UnauthorizedError`` unless ``actor`` is an admin or the creator."""
    role = get_community_role(db, community, actor)
    if not can_manage_requests(role):
        raise UnauthorizedError(f"Not authorized to {action}")
    return role


def require_creator(db: Session, community: Community, actor: User, action: str) -> CommunityRole:
    """Raise ``UnauthorizedError`` unless ``actor`` created the community."""
    role = get_community_role(db, community, actor)
    if not is_creator(role):
        raise UnauthorizedError(f"Only creator can {action}")
    return role
