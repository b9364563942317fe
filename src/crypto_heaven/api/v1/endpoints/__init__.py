# src/crypto_heaven/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .communities import router as communities_router
from .messages import router as messages_router
from .threads import router as threads_router
from .users import router as users_router

__all__ = [
    "communities_router",
    "messages_router",
    "threads_router",
    "users_router",
]
