"""
Time helpers.

All timestamps are stored in UTC. Some drivers (SQLite) hand datetimes back
without tzinfo, so readers normalise through ``as_utc`` before comparing.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
