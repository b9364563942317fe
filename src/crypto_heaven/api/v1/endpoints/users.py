# src/crypto_heaven/api/v1/endpoints/users.py
"""User profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from crypto_heaven.api.v1.dependencies import SessionDep, TokenSubjectDep
from crypto_heaven.schemas.thread import PostSummary
from crypto_heaven.schemas.user import UserProfile, UserProfileUpdate
from crypto_heaven.services import thread_service, user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.put("/me", response_model=UserProfile)
async def update_my_profile(
    payload: UserProfileUpdate,
    subject: TokenSubjectDep,
    db: SessionDep,
) -> UserProfile:
    """Create or update the caller's profile during onboarding.

    Only the token subject is required; the profile may not exist yet.
    """
    user = user_service.upsert_user(db, subject, payload)
    return user_service.fetch_user(db, user.external_id)


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(user_id: str, db: SessionDep) -> UserProfile:
    return user_service.fetch_user(db, user_id)


@router.get("/{user_id}/threads", response_model=list[PostSummary])
async def get_user_threads(user_id: str, db: SessionDep) -> list[PostSummary]:
    """List a user's top-level threads, newest first."""
    return thread_service.fetch_user_threads(db, user_id)
