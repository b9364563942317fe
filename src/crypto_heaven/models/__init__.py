# src/crypto_heaven/models/__init__.py
"""SQLAlchemy models for the Crypto Heaven application."""

from .community import Community, CommunityAdmin, CommunityJoinRequest, CommunityMember
from .message import Message, MessageLike
from .thread import Thread, ThreadLike
from .user import User

__all__ = [
    "Community", "CommunityAdmin", "CommunityJoinRequest", "CommunityMember",
    "Message", "MessageLike",
    "Thread", "ThreadLike",
    "User",
]
