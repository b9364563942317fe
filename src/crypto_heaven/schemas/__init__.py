# src/crypto_heaven/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import LikeResponse, StatusResponse, SuccessResponse
from .community import (
    CommunityCreate,
    CommunityDetails,
    CommunityPage,
    CommunitySummary,
    CommunityUpdate,
    MembershipState,
)
from .message import MessageCreate, MessageResponse, SendMessageResponse
from .thread import CommentCreate, PostPage, PostSummary, ThreadCreate, ThreadDetail
from .user import UserProfile, UserProfileUpdate

__all__ = [
    "LikeResponse", "StatusResponse", "SuccessResponse",
    "CommunityCreate", "CommunityDetails", "CommunityPage", "CommunitySummary",
    "CommunityUpdate", "MembershipState",
    "MessageCreate", "MessageResponse", "SendMessageResponse",
    "CommentCreate", "PostPage", "PostSummary", "ThreadCreate", "ThreadDetail",
    "UserProfile", "UserProfileUpdate",
]
