"""Community membership state machine.

A (user, community) pair moves between NONE, REQUESTED (private
communities only), MEMBER and ADMIN. Every transition runs in a single
transaction, so the member list and the user's community list, which share
the ``community_member`` rows, never disagree.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crypto_heaven.models import (
    Community,
    CommunityAdmin,
    CommunityJoinRequest,
    CommunityMember,
    Message,
    MessageLike,
    Thread,
    User,
)
from crypto_heaven.schemas.community import (
    CommunityDetails,
    CommunityListItem,
    CommunityMemberOut,
    CommunityPage,
    CommunitySummary,
)

from .errors import ConflictError, NotFoundError, service_operation
from .lookups import find_community, find_user, require_community, require_user
from .permissions import CommunityRole, get_community_role, require_creator, require_manager
from .thread_service import collect_descendant_ids, delete_threads

__all__ = [
    "create_community",
    "fetch_community_details",
    "fetch_communities",
    "update_community_info",
    "add_member_to_community",
    "remove_user_from_community",
    "delete_community",
    "join_community",
    "leave_community",
    "approve_join_request",
    "reject_join_request",
    "add_community_admin",
    "get_membership_state",
    "repair_memberships",
]

logger = logging.getLogger(__name__)


def _member_out(user: User) -> CommunityMemberOut:
    return CommunityMemberOut(
        id=user.external_id,
        name=user.name,
        username=user.username,
        image=user.image,
    )


def _members(db: Session, community: Community) -> list[User]:
    return (
        db.query(User)
        .join(CommunityMember, CommunityMember.user_id == User.id)
        .filter(CommunityMember.community_id == community.id)
        .order_by(CommunityMember.joined_at, User.id)
        .all()
    )


def _external_ids(db: Session, table: type, community: Community, order_column) -> list[str]:
    rows = (
        db.query(User.external_id)
        .join(table, table.user_id == User.id)
        .filter(table.community_id == community.id)
        .order_by(order_column)
        .all()
    )
    return [row.external_id for row in rows]


def _commit_idempotent(db: Session, description: str) -> bool:
    """Commit an insert into a set table, treating a duplicate key as a no-op.

    Two concurrent requests may both pass the existence check; the
    composite primary key rejects the second insert. Returns False when
    the insert was dropped as a duplicate.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug("Concurrent duplicate ignored: %s", description)
        return False
    return True


def create_community(
    db: Session,
    *,
    community_id: str,
    name: str,
    username: str,
    image: str | None,
    bio: str | None,
    created_by_id: str,
    is_private: bool = False,
) -> Community:
    """Create a community owned by ``created_by_id``.

    The creator becomes the first admin and the first member.
    """
    with service_operation(db, "create community"):
        if db.query(Community).filter(Community.username == username).first() is not None:
            raise ConflictError("Username already taken. Please choose another one.")
        if find_community(db, community_id) is not None:
            raise ConflictError("Community id already exists")

        creator = require_user(db, created_by_id)

        community = Community(
            external_id=community_id,
            name=name,
            username=username,
            image=image,
            bio=bio,
            is_private=is_private,
            created_by_id=creator.id,
        )
        db.add(community)
        db.flush()
        db.add(CommunityAdmin(community_id=community.id, user_id=creator.id))
        db.add(CommunityMember(community_id=community.id, user_id=creator.id))
        db.commit()
        db.refresh(community)
        logger.info("Community %s created by %s", community_id, created_by_id)
        return community


def fetch_community_details(db: Session, community_id: str) -> CommunityDetails | None:
    """Return the community page payload, or None when the id is unknown."""
    with service_operation(db, "fetch community details"):
        community = find_community(db, community_id)
        if community is None:
            return None

        return CommunityDetails(
            id=community.external_id,
            name=community.name,
            username=community.username,
            image=community.image,
            bio=community.bio,
            is_private=community.is_private,
            created_at=community.created_at,
            created_by=_member_out(community.created_by) if community.created_by else None,
            members=[_member_out(user) for user in _members(db, community)],
            admins=_external_ids(db, CommunityAdmin, community, CommunityAdmin.added_at),
            join_requests=_external_ids(
                db, CommunityJoinRequest, community, CommunityJoinRequest.requested_at
            ),
        )


def fetch_communities(
    db: Session,
    *,
    search_string: str = "",
    page_number: int = 1,
    page_size: int = 20,
    sort_by: str = "desc",
) -> CommunityPage:
    """Search communities by name or username with skip/limit paging."""
    page_number = max(1, page_number)
    skip_amount = (page_number - 1) * page_size

    ordering = (
        (Community.created_at.asc(), Community.id.asc())
        if sort_by == "asc"
        else (Community.created_at.desc(), Community.id.desc())
    )

    with service_operation(db, "fetch communities"):
        query = db.query(Community)
        if search_string.strip():
            needle = search_string.strip()
            query = query.filter(
                or_(
                    Community.username.icontains(needle, autoescape=True),
                    Community.name.icontains(needle, autoescape=True),
                )
            )

        total_communities_count = query.count()
        communities = query.order_by(*ordering).offset(skip_amount).limit(page_size).all()

        items = [
            CommunityListItem(
                id=community.external_id,
                name=community.name,
                username=community.username,
                image=community.image,
                bio=community.bio,
                is_private=community.is_private,
                members=[_member_out(user) for user in _members(db, community)],
            )
            for community in communities
        ]
        is_next = total_communities_count > skip_amount + len(communities)
        return CommunityPage(communities=items, is_next=is_next)


def update_community_info(
    db: Session,
    community_id: str,
    *,
    name: str,
    username: str,
    image: str | None,
) -> Community:
    with service_operation(db, "update community information"):
        community = require_community(db, community_id)
        taken = (
            db.query(Community)
            .filter(Community.username == username, Community.id != community.id)
            .first()
        )
        if taken is not None:
            raise ConflictError("Username already taken. Please choose another one.")

        community.name = name
        community.username = username
        community.image = image
        db.commit()
        db.refresh(community)
        return community


def add_member_to_community(db: Session, community_id: str, member_id: str) -> Community:
    """Add a user directly to the member set, bypassing the request queue."""
    with service_operation(db, "add member to community"):
        community = require_community(db, community_id)
        user = require_user(db, member_id)

        if db.get(CommunityMember, (community.id, user.id)) is not None:
            raise ConflictError("User is already a member of the community")

        pending = db.get(CommunityJoinRequest, (community.id, user.id))
        if pending is not None:
            db.delete(pending)
        db.add(CommunityMember(community_id=community.id, user_id=user.id))
        db.commit()
        db.refresh(community)
        return community


def remove_user_from_community(db: Session, user_id: str, community_id: str) -> dict[str, bool]:
    with service_operation(db, "remove user from community"):
        user = require_user(db, user_id)
        community = require_community(db, community_id)
        db.query(CommunityMember).filter(
            CommunityMember.community_id == community.id,
            CommunityMember.user_id == user.id,
        ).delete(synchronize_session=False)
        db.commit()
        return {"success": True}


def delete_community(db: Session, community_id: str) -> CommunitySummary:
    """Delete a community with its threads, messages and membership sets."""
    with service_operation(db, "delete community"):
        community = require_community(db, community_id)
        summary = CommunitySummary(
            id=community.external_id,
            name=community.name,
            username=community.username,
            image=community.image,
        )
        pk = community.id

        root_ids = [row.id for row in db.query(Thread.id).filter(Thread.community_id == pk)]
        thread_ids = collect_descendant_ids(db, root_ids)
        delete_threads(db, thread_ids)

        message_ids = select(Message.id).where(Message.community_id == pk)
        db.query(MessageLike).filter(MessageLike.message_id.in_(message_ids)).delete(
            synchronize_session=False
        )
        db.query(Message).filter(Message.community_id == pk).delete(synchronize_session=False)

        for table in (CommunityMember, CommunityAdmin, CommunityJoinRequest):
            db.query(table).filter(table.community_id == pk).delete(synchronize_session=False)

        db.delete(community)
        db.commit()
        logger.info(
            "Deleted community %s with %d thread(s)", summary.id, len(thread_ids)
        )
        return summary


def join_community(db: Session, community_id: str, user_id: str) -> dict[str, str]:
    """Join a public community or queue a request for a private one.

    Repeated calls are no-ops: the user ends up in ``members`` (or
    ``join_requests``) exactly once.
    """
    with service_operation(db, "join community"):
        community = find_community(db, community_id)
        user = find_user(db, user_id)
        if community is None or user is None:
            raise NotFoundError("Community or User not found")

        already_member = db.get(CommunityMember, (community.id, user.id)) is not None

        if community.is_private:
            # Members of a private community are never queued again.
            if already_member:
                return {"status": "joined"}
            if db.get(CommunityJoinRequest, (community.id, user.id)) is None:
                db.add(CommunityJoinRequest(community_id=community.id, user_id=user.id))
                if _commit_idempotent(db, f"join request {user_id} -> {community_id}"):
                    logger.info("User %s requested to join %s", user_id, community_id)
            return {"status": "requested"}

        if not already_member:
            db.add(CommunityMember(community_id=community.id, user_id=user.id))
            if _commit_idempotent(db, f"membership {user_id} -> {community_id}"):
                logger.info("User %s joined %s", user_id, community_id)
        return {"status": "joined"}


def leave_community(db: Session, community_id: str, user_id: str) -> dict[str, str]:
    """Remove the user from ``members``; a no-op for non-members."""
    with service_operation(db, "leave community"):
        community = find_community(db, community_id)
        user = find_user(db, user_id)
        if community is None or user is None:
            raise NotFoundError("Community or User not found")

        removed = db.query(CommunityMember).filter(
            CommunityMember.community_id == community.id,
            CommunityMember.user_id == user.id,
        ).delete(synchronize_session=False)
        db.commit()
        if removed:
            logger.info("User %s left %s", user_id, community_id)
        return {"status": "left"}


def approve_join_request(
    db: Session,
    community_id: str,
    user_id: str,
    approver_id: str,
) -> dict[str, str]:
    """Move ``user_id`` from the request queue into ``members``."""
    with service_operation(db, "approve join request"):
        community = find_community(db, community_id)
        user = find_user(db, user_id)
        approver = find_user(db, approver_id)
        if community is None or user is None or approver is None:
            raise NotFoundError("Community, User, or Approver not found")

        require_manager(db, community, approver, "approve requests")

        pending = db.query(CommunityJoinRequest).filter(
            CommunityJoinRequest.community_id == community.id,
            CommunityJoinRequest.user_id == user.id,
        )
        if db.get(CommunityMember, (community.id, user.id)) is None:
            db.add(CommunityMember(community_id=community.id, user_id=user.id))
        pending.delete(synchronize_session=False)
        if _commit_idempotent(db, f"approval {user_id} -> {community_id}"):
            logger.info("%s approved %s for %s", approver_id, user_id, community_id)
        else:
            # The membership landed elsewhere; only the request is left to drop.
            pending.delete(synchronize_session=False)
            db.commit()
        return {"status": "approved"}


def reject_join_request(
    db: Session,
    community_id: str,
    user_id: str,
    rejecter_id: str,
) -> dict[str, str]:
    """Drop ``user_id`` from the request queue; unknown users are ignored."""
    with service_operation(db, "reject join request"):
        community = find_community(db, community_id)
        rejecter = find_user(db, rejecter_id)
        if community is None or rejecter is None:
            raise NotFoundError("Community or Rejecter not found")

        require_manager(db, community, rejecter, "reject requests")

        user = find_user(db, user_id)
        if user is not None:
            db.query(CommunityJoinRequest).filter(
                CommunityJoinRequest.community_id == community.id,
                CommunityJoinRequest.user_id == user.id,
            ).delete(synchronize_session=False)
            db.commit()
        return {"status": "rejected"}


def add_community_admin(
    db: Session,
    community_id: str,
    user_id: str,
    admin_id: str,
) -> dict[str, str]:
    """Grant admin rights; only the creator may do this."""
    with service_operation(db, "add admin"):
        community = find_community(db, community_id)
        user = find_user(db, user_id)
        requester = find_user(db, admin_id)
        if community is None or user is None or requester is None:
            raise NotFoundError("Community, User, or Admin not found")

        require_creator(db, community, requester, "add admins")

        if db.get(CommunityAdmin, (community.id, user.id)) is None:
            db.add(CommunityAdmin(community_id=community.id, user_id=user.id))
            if _commit_idempotent(db, f"admin {user_id} -> {community_id}"):
                logger.info("%s made %s an admin of %s", admin_id, user_id, community_id)
        return {"status": "added"}


def get_membership_state(db: Session, community_id: str, user_id: str) -> CommunityRole:
    with service_operation(db, "fetch membership"):
        community = require_community(db, community_id)
        user = require_user(db, user_id)
        return get_community_role(db, community, user)


def repair_memberships(db: Session) -> dict[str, int]:
    """Restore membership invariants on imported or hand-edited data.

    Ensures every creator is listed as an admin and drops join requests
    held by users who are already members.
    """
    with service_operation(db, "repair memberships"):
        admins_added = 0
        for community in db.query(Community).all():
            if db.get(CommunityAdmin, (community.id, community.created_by_id)) is None:
                db.add(CommunityAdmin(community_id=community.id, user_id=community.created_by_id))
                admins_added += 1

        stale = (
            db.query(CommunityJoinRequest)
            .join(
                CommunityMember,
                (CommunityMember.community_id == CommunityJoinRequest.community_id)
                & (CommunityMember.user_id == CommunityJoinRequest.user_id),
            )
            .all()
        )
        for request in stale:
            db.delete(request)

        db.commit()
        if admins_added or stale:
            logger.warning(
                "Repaired memberships: %d admin row(s) added, %d stale request(s) dropped",
                admins_added,
                len(stale),
            )
        return {"admins_added": admins_added, "requests_dropped": len(stale)}
