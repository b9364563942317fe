# src/crypto_heaven/models/message.py
"""Models describing community chat messages."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crypto_heaven.db.session import Base
from crypto_heaven.db.time import utcnow

from .user import User


class Message(Base):
    """Chat message posted to a community feed.

    Messages are append-only: only the like set changes after creation.
    """

    __tablename__ = "message"
    __table_args__ = (Index("ix_message_community_created", "community_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("community.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("app_user.id"),
        nullable=False,
    )
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    # URL handed out by the upload service.
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    reply_to_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("message.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    author: Mapped[User] = relationship("User")
    reply_to: Mapped[Message | None] = relationship("Message", remote_side=[id])


class MessageLike(Base):
    """Per-user like on a chat message."""

    __tablename__ = "message_like"

    # Composite primary key keeps likes a set.
    message_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("message.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("app_user.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
