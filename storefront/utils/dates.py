"""
Date helpers shared by the services.
"""
from datetime import datetime, timezone
from typing import Optional


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to a naive datetime; aware values and None pass through.

    SQLite hands back naive timestamps for timezone-aware columns, so
    anything read from the database goes through here before comparison.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
