"""Pydantic schemas for UserInbox messages."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .common import WriteSchema


class UserInboxCreate(WriteSchema):
	id: Optional[str] = None
	user_id: str
	message: str = Field(..., min_length=1)
	type: str = Field(..., min_length=1, max_length=50, description="Message type, e.g. violation")
	related_post_id: Optional[str] = None
	related_comment_id: Optional[str] = None
	is_read: Optional[bool] = None
	created_at: Optional[datetime] = None


class UserInboxUpdate(WriteSchema):
	id: Optional[str] = None
	user_id: Optional[str] = None
	message: Optional[str] = Field(None, min_length=1)
	type: Optional[str] = Field(None, min_length=1, max_length=50)
	related_post_id: Optional[str] = None
	related_comment_id: Optional[str] = None
	is_read: Optional[bool] = None
	created_at: Optional[datetime] = None
