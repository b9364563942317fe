"""User-related Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from .community import CommunitySummary


class UserProfileUpdate(BaseModel):
    """Profile fields synchronised during onboarding."""

    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=1, max_length=50)
    image: str | None = Field(None, description="Avatar URL from the upload service")
    bio: str | None = Field(None, max_length=1000)


class UserProfile(BaseModel):
    """Public profile returned by the API."""

    id: str
    name: str
    username: str
    image: str | None
    bio: str | None
    onboarded: bool
    communities: list[CommunitySummary] = Field(default_factory=list)
