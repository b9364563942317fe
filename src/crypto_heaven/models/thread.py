# src/crypto_heaven/models/thread.py
"""SQLAlchemy models for threads and their replies."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crypto_heaven.db.session import Base
from crypto_heaven.db.time import utcnow

from .community import Community
from .user import User


class Thread(Base):
    """Post or reply.

    Top-level threads have parent_id = NULL; parent_id is set once at
    creation, so replies always form a forest.
    """

    __tablename__ = "thread"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("app_user.id"),
        nullable=False,
        index=True,
    )
    # NULL for personal posts and for replies.
    community_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("community.id"),
        nullable=True,
        index=True,
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("thread.id"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    author: Mapped[User] = relationship("User")
    community: Mapped[Community | None] = relationship("Community")
    children: Mapped[list[Thread]] = relationship(
        "Thread",
        order_by="Thread.created_at",
        viewonly=True,
    )


class ThreadLike(Base):
    """Per-user like on a thread."""

    __tablename__ = "thread_like"

    thread_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("thread.id", ondelete="CASCADE"),
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
