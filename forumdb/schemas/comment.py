"""Pydantic schemas for Comment."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import WriteSchema


class CommentCreate(WriteSchema):
	"""Schema for creating a comment or a reply (`parent_id` set)."""
	id: Optional[str] = None
	content: str = Field(..., min_length=1, description="Comment content")
	author_id: str
	post_id: str
	parent_id: Optional[str] = Field(None, description="Parent comment ID for nested replies")
	is_violation: Optional[bool] = None
	edit_count: Optional[int] = Field(None, ge=0)
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None


class CommentUpdate(WriteSchema):
	id: Optional[str] = None
	content: Optional[str] = Field(None, min_length=1)
	author_id: Optional[str] = None
	post_id: Optional[str] = None
	parent_id: Optional[str] = None
	is_violation: Optional[bool] = None
	edit_count: Optional[int] = Field(None, ge=0)
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
