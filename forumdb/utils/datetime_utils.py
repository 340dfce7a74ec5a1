from datetime import datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current time as a UTC-naive datetime, the form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_to_utc_naive(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO datetime string or datetime object and return a UTC-naive datetime.

    Raises ValueError for strings that are not ISO formatted.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt
