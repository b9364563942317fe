# src/crypto_heaven/schemas/thread.py
"""Thread-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ThreadCreate(BaseModel):
    """Schema for creating a new top-level thread."""

    text: str = Field(..., min_length=1, max_length=5000)
    community_id: str | None = Field(None, description="Community id; omit for a personal post")


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)


class ThreadAuthor(BaseModel):
    id: str
    name: str
    image: str | None = None


class ThreadCommunity(BaseModel):
    id: str
    name: str
    image: str | None = None


class ReplyAvatar(BaseModel):
    """Reply author avatar shown under a feed card."""

    author_image: str | None


class PostSummary(BaseModel):
    """Top-level thread as shown in feeds."""

    id: str
    text: str
    parent_id: str | None
    author: ThreadAuthor
    community: ThreadCommunity | None
    created_at: datetime
    children: list[ReplyAvatar] = Field(default_factory=list)
    likes: list[str] = Field(default_factory=list)


class PostPage(BaseModel):
    posts: list[PostSummary]
    is_next: bool


class ThreadReply(BaseModel):
    """Reply inside a thread view; nested replies stop after two levels."""

    id: str
    text: str
    parent_id: str | None
    author: ThreadAuthor
    created_at: datetime
    children: list[ThreadReply] = Field(default_factory=list)
    likes: list[str] = Field(default_factory=list)


class ThreadDetail(BaseModel):
    """Thread page payload."""

    id: str
    text: str
    parent_id: str | None
    author: ThreadAuthor
    community: ThreadCommunity | None
    created_at: datetime
    children: list[ThreadReply] = Field(default_factory=list)
    likes: list[str] = Field(default_factory=list)
