"""Pydantic schemas for moderation marks on posts and comments."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import WriteSchema


class PostViolationCreate(WriteSchema):
	id: Optional[str] = None
	post_id: str
	admin_id: str
	reason: str = Field(..., min_length=1, description="Why the post was marked")
	points_deducted: int = Field(..., ge=0)
	created_at: Optional[datetime] = None


class PostViolationUpdate(WriteSchema):
	id: Optional[str] = None
	post_id: Optional[str] = None
	admin_id: Optional[str] = None
	reason: Optional[str] = Field(None, min_length=1)
	points_deducted: Optional[int] = Field(None, ge=0)
	created_at: Optional[datetime] = None


class CommentViolationCreate(WriteSchema):
	id: Optional[str] = None
	comment_id: str
	admin_id: str
	reason: str = Field(..., min_length=1, description="Why the comment was marked")
	points_deducted: int = Field(..., ge=0)
	created_at: Optional[datetime] = None


class CommentViolationUpdate(WriteSchema):
	id: Optional[str] = None
	comment_id: Optional[str] = None
	admin_id: Optional[str] = None
	reason: Optional[str] = Field(None, min_length=1)
	points_deducted: Optional[int] = Field(None, ge=0)
	created_at: Optional[datetime] = None
