"""Pydantic schemas for `User` writes."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, EmailStr, Field

from .common import WriteSchema


class UserCreate(WriteSchema):
	id: Optional[str] = None
	email: EmailStr
	username: str = Field(..., min_length=1, max_length=100)
	# Stored as given: callers pass a hash (see services.posting.register_user)
	password: str = Field(..., min_length=1, max_length=255)
	is_admin: Optional[bool] = None
	credit_score: Optional[int] = None
	ban_until: Optional[datetime] = None
	contact_info: Optional[str] = Field(None, max_length=255)
	signature: Optional[str] = None
	avatar: Optional[str] = Field(None, max_length=500)
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	model_config = ConfigDict(extra="forbid", json_schema_extra={
		"example": {
			"email": "student@example.com",
			"username": "student",
			"password": "<pbkdf2 hash>",
		}
	})


class UserUpdate(WriteSchema):
	id: Optional[str] = None
	email: Optional[EmailStr] = None
	username: Optional[str] = Field(None, min_length=1, max_length=100)
	password: Optional[str] = Field(None, min_length=1, max_length=255)
	is_admin: Optional[bool] = None
	credit_score: Optional[int] = None
	ban_until: Optional[datetime] = None
	contact_info: Optional[str] = Field(None, max_length=255)
	signature: Optional[str] = None
	avatar: Optional[str] = Field(None, max_length=500)
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
