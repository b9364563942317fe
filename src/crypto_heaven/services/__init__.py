# src/crypto_heaven/services/__init__.py
"""Business logic services for the Crypto Heaven application."""

from .community_service import (
    add_community_admin,
    add_member_to_community,
    approve_join_request,
    create_community,
    delete_community,
    fetch_communities,
    fetch_community_details,
    get_membership_state,
    join_community,
    leave_community,
    reject_join_request,
    remove_user_from_community,
    repair_memberships,
    update_community_info,
)
from .errors import (
    ConflictError,
    NotFoundError,
    OperationFailedError,
    ServiceError,
    UnauthorizedError,
)
from .message_service import (
    delete_message,
    fetch_community_messages,
    like_message,
    send_message,
)
from .permissions import CommunityRole
from .thread_service import (
    add_comment_to_thread,
    create_thread,
    delete_thread,
    fetch_community_posts,
    fetch_posts,
    fetch_thread_by_id,
    fetch_user_threads,
    like_thread,
)
from .user_service import fetch_user, upsert_user

__all__ = [
    "ServiceError", "NotFoundError", "UnauthorizedError", "ConflictError",
    "OperationFailedError", "CommunityRole",
    "create_community", "fetch_community_details", "fetch_communities",
    "update_community_info", "add_member_to_community", "remove_user_from_community",
    "delete_community", "join_community", "leave_community", "approve_join_request",
    "reject_join_request", "add_community_admin", "get_membership_state",
    "repair_memberships",
    "send_message", "like_message", "delete_message", "fetch_community_messages",
    "create_thread", "add_comment_to_thread", "delete_thread", "like_thread",
    "fetch_posts", "fetch_thread_by_id", "fetch_community_posts", "fetch_user_threads",
    "upsert_user", "fetch_user",
]
