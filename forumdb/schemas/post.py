"""Pydantic schemas for Post."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import WriteSchema


class PostCreate(WriteSchema):
	"""Schema for creating a new post."""
	id: Optional[str] = None
	title: str = Field(..., min_length=1, max_length=500, description="Post title")
	content: str = Field(..., min_length=1, description="Post content")
	author_id: str = Field(..., description="Author user ID")
	category_id: str = Field(..., description="Category ID")
	is_violation: Optional[bool] = None
	edit_count: Optional[int] = Field(None, ge=0)
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None


class PostUpdate(WriteSchema):
	"""Schema for updating a post."""
	id: Optional[str] = None
	title: Optional[str] = Field(None, min_length=1, max_length=500)
	content: Optional[str] = Field(None, min_length=1)
	author_id: Optional[str] = None
	category_id: Optional[str] = None
	is_violation: Optional[bool] = None
	edit_count: Optional[int] = Field(None, ge=0)
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
