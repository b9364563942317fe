"""Service-level helpers for threads and their reply trees."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from crypto_heaven.models import Community, Thread, ThreadLike, User
from crypto_heaven.schemas.thread import (
    PostPage,
    PostSummary,
    ReplyAvatar,
    ThreadAuthor,
    ThreadCommunity,
    ThreadDetail,
    ThreadReply,
)

from .errors import NotFoundError, service_operation
from .lookups import find_community, parse_object_id, require_community, require_user

__all__ = [
    "get_thread",
    "create_thread",
    "add_comment_to_thread",
    "collect_descendant_ids",
    "delete_thread",
    "delete_threads",
    "like_thread",
    "fetch_posts",
    "fetch_thread_by_id",
    "fetch_community_posts",
    "fetch_user_threads",
]

logger = logging.getLogger(__name__)

# Depth of replies rendered by ``fetch_thread_by_id``.
THREAD_REPLY_DEPTH = 2


def _require_thread(db: Session, thread_id: str | int) -> Thread:
    pk = parse_object_id(thread_id)
    thread = db.get(Thread, pk) if pk is not None else None
    if thread is None:
        raise NotFoundError("Thread not found")
    return thread


def _author_out(user: User) -> ThreadAuthor:
    return ThreadAuthor(id=user.external_id, name=user.name, image=user.image)


def _community_out(community: Community | None) -> ThreadCommunity | None:
    if community is None:
        return None
    return ThreadCommunity(id=community.external_id, name=community.name, image=community.image)


def _like_ids(db: Session, thread_ids: Iterable[int]) -> dict[int, list[str]]:
    """Return the external ids of likers keyed by thread id."""
    ids = list(thread_ids)
    likes: dict[int, list[str]] = {thread_id: [] for thread_id in ids}
    if not ids:
        return likes
    rows = (
        db.query(ThreadLike.thread_id, User.external_id)
        .join(User, User.id == ThreadLike.user_id)
        .filter(ThreadLike.thread_id.in_(ids))
        .order_by(ThreadLike.created_at)
        .all()
    )
    for thread_id, external_id in rows:
        likes[thread_id].append(external_id)
    return likes


def to_post_summary(thread: Thread, likes: list[str]) -> PostSummary:
    """Convert a Thread ORM instance to its feed card schema."""
    return PostSummary(
        id=str(thread.id),
        text=thread.text,
        parent_id=str(thread.parent_id) if thread.parent_id is not None else None,
        author=_author_out(thread.author),
        community=_community_out(thread.community),
        created_at=thread.created_at,
        children=[ReplyAvatar(author_image=child.author.image) for child in thread.children],
        likes=likes,
    )


def _to_summaries(db: Session, threads: list[Thread]) -> list[PostSummary]:
    likes = _like_ids(db, (thread.id for thread in threads))
    return [to_post_summary(thread, likes[thread.id]) for thread in threads]


def get_thread(db: Session, thread_id: str) -> Thread:
    """Return a thread by id or raise ``NotFoundError``."""
    return _require_thread(db, thread_id)


def create_thread(
    db: Session,
    *,
    text: str,
    author_id: str,
    community_id: str | None = None,
) -> Thread:
    """Create a top-level thread.

    An unknown ``community_id`` turns the thread into a personal post.
    """
    with service_operation(db, "create thread"):
        author = require_user(db, author_id)
        community = find_community(db, community_id) if community_id else None
        if community_id and community is None:
            logger.debug("Community %s not found; creating personal thread", community_id)

        thread = Thread(
            text=text,
            author_id=author.id,
            community_id=community.id if community is not None else None,
        )
        db.add(thread)
        db.commit()
        db.refresh(thread)
        return thread


def add_comment_to_thread(db: Session, thread_id: str, comment_text: str, user_id: str) -> Thread:
    """Attach a reply to an existing thread.

    Replies do not inherit the parent's community.
    """
    with service_operation(db, "add comment"):
        parent = _require_thread(db, thread_id)
        author = require_user(db, user_id)
        comment = Thread(text=comment_text, author_id=author.id, parent_id=parent.id)
        db.add(comment)
        db.commit()
        db.refresh(comment)
        return comment


def collect_descendant_ids(db: Session, root_ids: Iterable[int]) -> list[int]:
    """Return ``root_ids`` plus the ids of every reply beneath them.

    Walks the tree one level at a time so depth is bounded by the data,
    not by the call stack.
    """
    collected: list[int] = []
    seen: set[int] = set()
    frontier = list(root_ids)
    while frontier:
        for thread_id in frontier:
            if thread_id not in seen:
                seen.add(thread_id)
                collected.append(thread_id)
        rows = db.query(Thread.id).filter(Thread.parent_id.in_(frontier)).all()
        frontier = [row.id for row in rows if row.id not in seen]
    return collected


def delete_threads(db: Session, thread_ids: list[int]) -> int:
    """Delete the given threads and their likes without committing."""
    if not thread_ids:
        return 0
    db.query(ThreadLike).filter(ThreadLike.thread_id.in_(thread_ids)).delete(
        synchronize_session=False
    )
    return db.query(Thread).filter(Thread.id.in_(thread_ids)).delete(
        synchronize_session=False
    )


def delete_thread(db: Session, thread_id: str) -> list[str]:
    """Delete a thread together with all of its descendants.

    User and community thread lists are derived from the thread rows, so
    removing the rows removes every reference. Returns the deleted ids.
    """
    with service_operation(db, "delete thread"):
        root_id = _require_thread(db, thread_id).id
        ids = collect_descendant_ids(db, [root_id])
        delete_threads(db, ids)
        db.commit()
        logger.info("Deleted thread %s with %d descendant(s)", root_id, len(ids) - 1)
        return [str(thread_id) for thread_id in ids]


def like_thread(db: Session, thread_id: str, user_id: str) -> dict[str, bool | int]:
    """Toggle ``user_id``'s like on a thread."""
    with service_operation(db, "like thread"):
        thread = _require_thread(db, thread_id)
        user = require_user(db, user_id)

        existing = db.get(ThreadLike, (thread.id, user.id))
        if existing is not None:
            db.delete(existing)
        else:
            db.add(ThreadLike(thread_id=thread.id, user_id=user.id))
        db.flush()

        like_count = (
            db.query(func.count())
            .select_from(ThreadLike)
            .filter(ThreadLike.thread_id == thread.id)
            .scalar()
            or 0
        )
        db.commit()
        return {"liked": existing is None, "like_count": int(like_count)}


def fetch_posts(db: Session, page_number: int = 1, page_size: int = 20) -> PostPage:
    """Return one page of top-level threads, newest first."""
    page_number = max(1, page_number)
    skip_amount = (page_number - 1) * page_size

    with service_operation(db, "fetch posts"):
        query = db.query(Thread).filter(Thread.parent_id.is_(None))
        total_posts_count = query.count()
        threads = (
            query.order_by(Thread.created_at.desc(), Thread.id.desc())
            .offset(skip_amount)
            .limit(page_size)
            .all()
        )

        is_next = total_posts_count > skip_amount + len(threads)
        return PostPage(posts=_to_summaries(db, threads), is_next=is_next)


def _reply_out(thread: Thread, likes: dict[int, list[str]], depth: int) -> ThreadReply:
    children: list[ThreadReply] = []
    if depth > 1:
        children = [_reply_out(child, likes, depth - 1) for child in thread.children]
    return ThreadReply(
        id=str(thread.id),
        text=thread.text,
        parent_id=str(thread.parent_id) if thread.parent_id is not None else None,
        author=_author_out(thread.author),
        created_at=thread.created_at,
        children=children,
        likes=likes.get(thread.id, []),
    )


def fetch_thread_by_id(db: Session, thread_id: str) -> ThreadDetail | None:
    """Return a thread with two levels of replies, or None when missing."""
    pk = parse_object_id(thread_id)
    if pk is None:
        return None

    with service_operation(db, "fetch thread"):
        thread = db.get(Thread, pk)
        if thread is None:
            return None

        visible_ids = [thread.id]
        level = [thread]
        for _ in range(THREAD_REPLY_DEPTH):
            level = [child for node in level for child in node.children]
            visible_ids.extend(node.id for node in level)
        likes = _like_ids(db, visible_ids)

        return ThreadDetail(
            id=str(thread.id),
            text=thread.text,
            parent_id=str(thread.parent_id) if thread.parent_id is not None else None,
            author=_author_out(thread.author),
            community=_community_out(thread.community),
            created_at=thread.created_at,
            children=[_reply_out(child, likes, THREAD_REPLY_DEPTH) for child in thread.children],
            likes=likes[thread.id],
        )


def fetch_community_posts(db: Session, community_id: str) -> list[PostSummary]:
    """Return a community's top-level threads, newest first."""
    with service_operation(db, "fetch community posts"):
        community = require_community(db, community_id)
        threads = (
            db.query(Thread)
            .filter(Thread.community_id == community.id, Thread.parent_id.is_(None))
            .order_by(Thread.created_at.desc(), Thread.id.desc())
            .all()
        )
        return _to_summaries(db, threads)


def fetch_user_threads(db: Session, user_id: str) -> list[PostSummary]:
    """Return a user's top-level threads, newest first."""
    with service_operation(db, "fetch user threads"):
        user = require_user(db, user_id)
        threads = (
            db.query(Thread)
            .filter(Thread.author_id == user.id, Thread.parent_id.is_(None))
            .order_by(Thread.created_at.desc(), Thread.id.desc())
            .all()
        )
        return _to_summaries(db, threads)
