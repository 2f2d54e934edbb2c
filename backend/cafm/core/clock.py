"""
Wall-clock helper.

Timestamps are stored as naive UTC so that SQLite and PostgreSQL round-trip
the same values.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
