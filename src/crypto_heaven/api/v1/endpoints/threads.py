# src/crypto_heaven/api/v1/endpoints/threads.py
"""Thread and reply endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from crypto_heaven.api.v1.dependencies import CurrentUserDep, SessionDep
from crypto_heaven.core.settings import settings
from crypto_heaven.schemas.common import LikeResponse
from crypto_heaven.schemas.thread import (
    CommentCreate,
    PostPage,
    PostSummary,
    ThreadCreate,
    ThreadDetail,
)
from crypto_heaven.services import thread_service
from crypto_heaven.services.errors import UnauthorizedError

router = APIRouter(prefix="/threads", tags=["threads"])


@router.get("/", response_model=PostPage)
async def list_threads(
    db: SessionDep,
    page_number: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
) -> PostPage:
    """Return the home feed of top-level threads, newest first."""
    return thread_service.fetch_posts(
        db,
        page_number=page_number,
        page_size=page_size or settings.posts_page_size,
    )


@router.post("/", response_model=PostSummary, status_code=status.HTTP_201_CREATED)
async def create_thread(
    payload: ThreadCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostSummary:
    """Create a thread, optionally inside a community."""
    thread = thread_service.create_thread(
        db,
        text=payload.text,
        author_id=current_user.external_id,
        community_id=payload.community_id,
    )
    return thread_service.to_post_summary(thread, [])


@router.get("/{thread_id}", response_model=ThreadDetail)
async def get_thread(thread_id: str, db: SessionDep) -> ThreadDetail:
    """Return a thread with two levels of replies."""
    thread = thread_service.fetch_thread_by_id(db, thread_id)
    if thread is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Thread not found",
        )
    return thread


@router.delete("/{thread_id}")
async def delete_thread(
    thread_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, list[str]]:
    """Delete a thread and all of its replies. Author only."""
    thread = thread_service.get_thread(db, thread_id)
    if thread.author_id != current_user.id:
        raise UnauthorizedError("Only the author can delete this thread")
    return {"deleted": thread_service.delete_thread(db, thread_id)}


@router.post(
    "/{thread_id}/comments",
    response_model=PostSummary,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    thread_id: str,
    payload: CommentCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostSummary:
    """Reply to a thread."""
    comment = thread_service.add_comment_to_thread(
        db, thread_id, payload.text, current_user.external_id
    )
    return thread_service.to_post_summary(comment, [])


@router.post("/{thread_id}/like", response_model=LikeResponse)
async def like_thread(
    thread_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, bool | int]:
    """Toggle the current user's like on a thread."""
    return thread_service.like_thread(db, thread_id, current_user.external_id)
