"""Community chat feed.

The feed is an append-only log per community. Clients do not subscribe:
after every mutating call they fetch the recent window again.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from crypto_heaven.models import Message, MessageLike, User
from crypto_heaven.schemas.message import MessageAuthor, MessageResponse, ReplyPreview

from .errors import NotFoundError, UnauthorizedError, service_operation
from .lookups import find_community, find_user, parse_object_id, require_community
from .permissions import is_member

__all__ = [
    "send_message",
    "like_message",
    "delete_message",
    "get_message",
    "fetch_community_messages",
    "serialize_message",
]

logger = logging.getLogger(__name__)


def _author_out(user: User | None) -> MessageAuthor | None:
    if user is None:
        return None
    return MessageAuthor(id=user.external_id, name=user.name, image=user.image)


def _like_ids(db: Session, message_ids: Iterable[int]) -> dict[int, list[str]]:
    ids = list(message_ids)
    likes: dict[int, list[str]] = {message_id: [] for message_id in ids}
    if not ids:
        return likes
    rows = (
        db.query(MessageLike.message_id, User.external_id)
        .join(User, User.id == MessageLike.user_id)
        .filter(MessageLike.message_id.in_(ids))
        .order_by(MessageLike.created_at)
        .all()
    )
    for message_id, external_id in rows:
        likes[message_id].append(external_id)
    return likes


def serialize_message(message: Message, likes: list[str], community_id: str) -> MessageResponse:
    """Convert a Message ORM instance into its API payload.

    Only one level of reply context is included.
    """
    reply = message.reply_to
    return MessageResponse(
        id=str(message.id),
        text=message.text or "",
        image=message.image or None,
        author=_author_out(message.author),
        community=community_id,
        created_at=message.created_at,
        reply_to=(
            ReplyPreview(id=str(reply.id), text=reply.text or "", author=_author_out(reply.author))
            if reply is not None
            else None
        ),
        likes=likes,
    )


def _require_message(db: Session, message_id: str | int) -> Message:
    pk = parse_object_id(message_id)
    message = db.get(Message, pk) if pk is not None else None
    if message is None:
        raise NotFoundError("Message not found")
    return message


def get_message(db: Session, message_id: str) -> Message:
    """Return a message by id or raise ``NotFoundError``."""
    return _require_message(db, message_id)


def send_message(
    db: Session,
    *,
    text: str | None,
    author_id: str,
    community_id: str,
    image: str | None = None,
    reply_to_id: str | None = None,
) -> dict[str, object]:
    """Append a message to a community's feed.

    Only members may post. A reply target that does not resolve to a
    message of the same community is dropped without error.
    """
    with service_operation(db, "send message"):
        user = find_user(db, author_id)
        community = find_community(db, community_id)
        if user is None or community is None:
            raise NotFoundError("User or Community not found")

        if not is_member(db, community, user):
            raise UnauthorizedError("Only members can send messages")

        message = Message(author_id=user.id, community_id=community.id)
        if text:
            message.text = text
        if image:
            message.image = image
        if reply_to_id:
            target_pk = parse_object_id(reply_to_id)
            target = db.get(Message, target_pk) if target_pk is not None else None
            if target is not None and target.community_id == community.id:
                message.reply_to_id = target.id
            else:
                logger.debug("Ignoring unresolved reply target %r", reply_to_id)

        db.add(message)
        db.commit()
        db.refresh(message)
        return {"success": True, "message": serialize_message(message, [], community.external_id)}


def like_message(db: Session, message_id: str, user_id: str) -> dict[str, bool | int]:
    """Toggle ``user_id``'s like on a message and return the new state."""
    with service_operation(db, "like message"):
        pk = parse_object_id(message_id)
        message = db.get(Message, pk) if pk is not None else None
        user = find_user(db, user_id)
        if message is None or user is None:
            raise NotFoundError("Message or User not found")

        existing = db.get(MessageLike, (message.id, user.id))
        if existing is not None:
            db.delete(existing)
        else:
            db.add(MessageLike(message_id=message.id, user_id=user.id))
        db.flush()

        like_count = (
            db.query(func.count())
            .select_from(MessageLike)
            .filter(MessageLike.message_id == message.id)
            .scalar()
            or 0
        )
        db.commit()
        return {"liked": existing is None, "like_count": int(like_count)}


def delete_message(db: Session, message_id: str) -> dict[str, bool]:
    """Delete a message by id.

    Performs no authorship check; callers must verify that the acting
    user wrote the message before calling this.
    """
    with service_operation(db, "delete message"):
        pk = _require_message(db, message_id).id
        db.query(MessageLike).filter(MessageLike.message_id == pk).delete(
            synchronize_session=False
        )
        # Replies keep their text and lose the quoted context.
        db.query(Message).filter(Message.reply_to_id == pk).update(
            {Message.reply_to_id: None}, synchronize_session=False
        )
        db.query(Message).filter(Message.id == pk).delete(synchronize_session=False)
        db.commit()
        logger.info("Deleted message %s", pk)
        return {"success": True}


def fetch_community_messages(
    db: Session,
    community_id: str,
    page_size: int = 50,
) -> list[MessageResponse]:
    """Return the ``page_size`` most recent messages, oldest first."""
    with service_operation(db, "fetch messages"):
        community = require_community(db, community_id)
        recent = (
            db.query(Message)
            .filter(Message.community_id == community.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(page_size)
            .all()
        )
        messages = list(reversed(recent))
        likes = _like_ids(db, (message.id for message in messages))
        return [
            serialize_message(message, likes[message.id], community.external_id)
            for message in messages
        ]
