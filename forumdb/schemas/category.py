"""Pydantic schemas for Category."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import WriteSchema


class CategoryCreate(WriteSchema):
	"""Schema for creating a new category."""
	id: Optional[str] = None
	name: str = Field(..., min_length=1, max_length=100, description="Category name")
	description: Optional[str] = Field(None, description="Category description")
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None


class CategoryUpdate(WriteSchema):
	"""Schema for updating a category."""
	id: Optional[str] = None
	name: Optional[str] = Field(None, min_length=1, max_length=100)
	description: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
