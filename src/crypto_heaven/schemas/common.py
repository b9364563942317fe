"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    """Outcome of a membership transition."""

    status: str = Field(..., description="joined, requested, left, approved, rejected, added...")


class SuccessResponse(BaseModel):
    success: bool


class LikeResponse(BaseModel):
    """Result of toggling a like."""

    liked: bool = Field(..., description="True when the caller now likes the item")
    like_count: int = Field(..., ge=0)
