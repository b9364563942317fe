# src/crypto_heaven/schemas/community.py
"""Community-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CommunityCreate(BaseModel):
    """Schema for creating a new community."""

    id: str = Field(..., min_length=1, description="Client-chosen community id")
    name: str
    username: str
    image: str | None = None
    bio: str | None = None
    is_private: bool = False


class CommunityUpdate(BaseModel):
    """Editable community information."""

    name: str
    username: str
    image: str | None = None


class CommunitySummary(BaseModel):
    id: str
    name: str
    username: str
    image: str | None = None


class CommunityMemberOut(BaseModel):
    """Member reference listed on the community page."""

    id: str
    name: str
    username: str | None = None
    image: str | None = None


class CommunityDetails(BaseModel):
    """Full community view used by the community page."""

    id: str
    name: str
    username: str
    image: str | None
    bio: str | None
    is_private: bool
    created_at: datetime
    created_by: CommunityMemberOut | None
    members: list[CommunityMemberOut]
    admins: list[str] = Field(default_factory=list, description="Admin user ids")
    join_requests: list[str] = Field(default_factory=list, description="Pending user ids")


class CommunityListItem(BaseModel):
    """Community entry returned by the search listing."""

    id: str
    name: str
    username: str
    image: str | None
    bio: str | None
    is_private: bool
    members: list[CommunityMemberOut]


class CommunityPage(BaseModel):
    communities: list[CommunityListItem]
    is_next: bool


class MembershipState(BaseModel):
    """Relationship of the calling user to a community."""

    community_id: str
    user_id: str
    role: Literal["none", "requested", "member", "admin", "creator"]
