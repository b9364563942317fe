# src/crypto_heaven/api/v1/endpoints/messages.py
"""Chat message endpoints.

Sending and listing live under ``/communities/{id}/messages``; this router
handles operations addressed by message id.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from crypto_heaven.api.v1.dependencies import CurrentUserDep, SessionDep
from crypto_heaven.core.settings import settings
from crypto_heaven.schemas.common import LikeResponse, SuccessResponse
from crypto_heaven.services import message_service
from crypto_heaven.services.errors import UnauthorizedError

router = APIRouter(prefix="/messages", tags=["messages"])

logger = logging.getLogger(__name__)


@router.post("/{message_id}/like", response_model=LikeResponse)
async def like_message(
    message_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, bool | int]:
    """Toggle the current user's like on a message."""
    return message_service.like_message(db, message_id, current_user.external_id)


@router.delete("/{message_id}", response_model=SuccessResponse)
async def delete_message(
    message_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, bool]:
    """Delete a chat message.

    Authorship is only verified when ``ENFORCE_MESSAGE_AUTHORSHIP`` is set;
    otherwise the check is left to the client.
    """
    if settings.enforce_message_authorship:
        message = message_service.get_message(db, message_id)
        if message.author_id != current_user.id:
            raise UnauthorizedError("Only the author can delete this message")
    else:
        logger.debug(
            "Deleting message %s for %s without authorship check",
            message_id,
            current_user.external_id,
        )
    return message_service.delete_message(db, message_id)
