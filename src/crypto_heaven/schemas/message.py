# src/crypto_heaven/schemas/message.py
"""Community chat message schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    """Schema for posting a chat message.

    Neither ``text`` nor ``image`` is required; clients are expected to
    send at least one of them.
    """

    text: str | None = Field(None, description="Message body")
    image: str | None = Field(None, description="Image URL from the upload service")
    reply_to_id: str | None = Field(None, description="Message being replied to")


class MessageAuthor(BaseModel):
    id: str
    name: str
    image: str | None = None


class ReplyPreview(BaseModel):
    """One level of quoted context for a reply."""

    id: str
    text: str
    author: MessageAuthor | None


class MessageResponse(BaseModel):
    """Chat message as rendered by the chat widget."""

    id: str
    text: str
    image: str | None
    author: MessageAuthor | None
    community: str
    created_at: datetime
    reply_to: ReplyPreview | None
    likes: list[str] = Field(default_factory=list, description="Ids of users who liked it")


class SendMessageResponse(BaseModel):
    success: bool
    message: MessageResponse
