"Date window helpers"

from datetime import datetime, timedelta, timezone
from typing import Optional

RECENCY_DAYS = 30


def parse_timestamp(timestamp: str) -> Optional[datetime]:
    """Parses an ISO 8601 timestamp, naive values being read as UTC."""
    try:
        date = datetime.fromisoformat(timestamp.strip())
    except (AttributeError, ValueError):
        return None
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return date


def is_recent(
    timestamp: Optional[str],
    days: int = RECENCY_DAYS,
    now: Optional[datetime] = None,
) -> bool:
    """Checks that a timestamp lies in the last `days` days (bounds included)."""
    if not timestamp:
        return False
    date = parse_timestamp(timestamp)
    if date is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    return now - timedelta(days=days) <= date <= now
