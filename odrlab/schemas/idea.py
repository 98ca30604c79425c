"""Idea, review and discussion request schemas."""

from typing import Literal, Optional

from pydantic import Field

from odrlab.schemas.base import CamelModel


class IdeaSubmissionCreate(CamelModel):
    """Fields submitted when proposing a new idea for review."""
    title: str = Field(..., min_length=3, max_length=200)
    caption: Optional[str] = Field(None, max_length=300)
    description: str = Field(..., min_length=10, max_length=2000)
    prior_odr_experience: Optional[str] = Field(None, max_length=500)


class AdminIdeaCreate(CamelModel):
    """Admin shortcut that publishes an idea directly for ``owner_id``."""
    title: str = Field(..., min_length=3, max_length=200)
    caption: Optional[str] = Field(None, max_length=300)
    description: str = Field(..., min_length=10, max_length=2000)
    owner_id: int


class IdeaUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    caption: Optional[str] = Field(None, max_length=300)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)


class ReviewIn(CamelModel):
    idea_id: int
    reason: Optional[str] = Field(None, max_length=1000)


class CommentCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=1000)
    parent_id: Optional[int] = None


class LikeAction(CamelModel):
    action: Literal["like", "unlike"]
