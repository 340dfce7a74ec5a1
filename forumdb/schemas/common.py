"""Shared base for the write schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from ..utils.datetime_utils import parse_to_utc_naive


class WriteSchema(BaseModel):
	"""Base for create/update payloads.

	Unknown fields are rejected; datetimes are stored as UTC-naive values.
	"""

	model_config = ConfigDict(extra="forbid")

	@field_validator("*", mode="after")
	@classmethod
	def normalize_datetimes(cls, v: Any) -> Any:
		if isinstance(v, datetime):
			return parse_to_utc_naive(v)
		return v
