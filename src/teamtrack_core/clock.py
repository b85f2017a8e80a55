"""Clock used to stamp every ``*_at`` field written by the core."""
from datetime import datetime
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.utcnow()
