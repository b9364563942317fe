# src/crypto_heaven/api/v1/endpoints/communities.py
"""Community-related endpoints for the Crypto Heaven API."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException, Query, status

from crypto_heaven.api.v1.dependencies import CurrentUserDep, SessionDep
from crypto_heaven.core.settings import settings
from crypto_heaven.schemas.common import StatusResponse, SuccessResponse
from crypto_heaven.schemas.community import (
    CommunityCreate,
    CommunityDetails,
    CommunityPage,
    CommunitySummary,
    CommunityUpdate,
    MembershipState,
)
from crypto_heaven.schemas.message import MessageCreate, MessageResponse, SendMessageResponse
from crypto_heaven.schemas.thread import PostSummary
from crypto_heaven.services import community_service, message_service, thread_service
from crypto_heaven.services.errors import UnauthorizedError
from crypto_heaven.services.lookups import require_community
from crypto_heaven.services.permissions import is_member, require_creator, require_manager

router = APIRouter(prefix="/communities", tags=["communities"])


def _details_or_404(db: SessionDep, community_id: str) -> CommunityDetails:
    details = community_service.fetch_community_details(db, community_id)
    if details is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Community not found",
        )
    return details


@router.get("/", response_model=CommunityPage)
async def list_communities(
    db: SessionDep,
    search: str = "",
    page_number: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    sort_by: Literal["asc", "desc"] = "desc",
) -> CommunityPage:
    """Search communities by name or username."""
    return community_service.fetch_communities(
        db,
        search_string=search,
        page_number=page_number,
        page_size=page_size or settings.communities_page_size,
        sort_by=sort_by,
    )


@router.post("/", response_model=CommunityDetails, status_code=status.HTTP_201_CREATED)
async def create_community(
    community_data: CommunityCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityDetails:
    """Create a community owned by the current user."""
    community = community_service.create_community(
        db,
        community_id=community_data.id,
        name=community_data.name,
        username=community_data.username,
        image=community_data.image,
        bio=community_data.bio,
        created_by_id=current_user.external_id,
        is_private=community_data.is_private,
    )
    return _details_or_404(db, community.external_id)


@router.get("/{community_id}", response_model=CommunityDetails)
async def get_community(community_id: str, db: SessionDep) -> CommunityDetails:
    """Get a specific community with its members."""
    return _details_or_404(db, community_id)


@router.patch("/{community_id}", response_model=CommunityDetails)
async def update_community(
    community_id: str,
    payload: CommunityUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityDetails:
    """Update name, username and image. Admins and the creator only."""
    community = require_community(db, community_id)
    require_manager(db, community, current_user, "update community")
    community_service.update_community_info(
        db,
        community_id,
        name=payload.name,
        username=payload.username,
        image=payload.image,
    )
    return _details_or_404(db, community_id)


@router.delete("/{community_id}", response_model=CommunitySummary)
async def delete_community(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunitySummary:
    """Delete a community and everything posted in it. Creator only."""
    community = require_community(db, community_id)
    require_creator(db, community, current_user, "delete community")
    return community_service.delete_community(db, community_id)


@router.get("/{community_id}/membership", response_model=MembershipState)
async def get_membership(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> MembershipState:
    """Return the current user's role in the community."""
    role = community_service.get_membership_state(db, community_id, current_user.external_id)
    return MembershipState(
        community_id=community_id,
        user_id=current_user.external_id,
        role=role.value,
    )


@router.post("/{community_id}/join", response_model=StatusResponse)
async def join_community(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, str]:
    """Join a public community or request to join a private one."""
    return community_service.join_community(db, community_id, current_user.external_id)


@router.post("/{community_id}/leave", response_model=StatusResponse)
async def leave_community(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, str]:
    """Leave a community."""
    return community_service.leave_community(db, community_id, current_user.external_id)


@router.post("/{community_id}/requests/{user_id}/approve", response_model=StatusResponse)
async def approve_request(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, str]:
    return community_service.approve_join_request(
        db, community_id, user_id, current_user.external_id
    )


@router.post("/{community_id}/requests/{user_id}/reject", response_model=StatusResponse)
async def reject_request(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, str]:
    return community_service.reject_join_request(
        db, community_id, user_id, current_user.external_id
    )


@router.post("/{community_id}/admins/{user_id}", response_model=StatusResponse)
async def add_admin(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, str]:
    """Grant admin rights. Creator only."""
    return community_service.add_community_admin(
        db, community_id, user_id, current_user.external_id
    )


@router.post(
    "/{community_id}/members/{user_id}",
    response_model=CommunityDetails,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityDetails:
    """Add a user directly, bypassing the request queue."""
    community = require_community(db, community_id)
    require_manager(db, community, current_user, "add members")
    community_service.add_member_to_community(db, community_id, user_id)
    return _details_or_404(db, community_id)


@router.delete("/{community_id}/members/{user_id}", response_model=SuccessResponse)
async def remove_member(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, bool]:
    community = require_community(db, community_id)
    require_manager(db, community, current_user, "remove members")
    return community_service.remove_user_from_community(db, user_id, community_id)


@router.get("/{community_id}/threads", response_model=list[PostSummary])
async def list_community_threads(community_id: str, db: SessionDep) -> list[PostSummary]:
    """List a community's top-level threads, newest first."""
    return thread_service.fetch_community_posts(db, community_id)


@router.get("/{community_id}/messages", response_model=list[MessageResponse])
async def list_community_messages(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int | None = Query(None, ge=1, le=200),
) -> list[MessageResponse]:
    """Return the recent chat window, oldest first. Members only."""
    community = require_community(db, community_id)
    if not is_member(db, community, current_user):
        raise UnauthorizedError("Only members can view messages")
    return message_service.fetch_community_messages(
        db, community_id, page_size=limit or settings.chat_page_size
    )


@router.post(
    "/{community_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    community_id: str,
    payload: MessageCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, object]:
    """Send a chat message to a community."""
    return message_service.send_message(
        db,
        text=payload.text,
        author_id=current_user.external_id,
        community_id=community_id,
        image=payload.image,
        reply_to_id=payload.reply_to_id,
    )
