"""
core/clock.py -- Time source shared by session handling and the stores.

Session expiry is the only time-sensitive rule in the portal. Every component
that needs "now" accepts a clock callable defaulting to utc_now(), so tests
can move time forward without patching the datetime module.
"""

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Serialize a datetime for TEXT columns.

    Fixed microsecond precision keeps stored values the same width, so string
    comparison in SQL orders them the same way as the datetimes themselves.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    """Parse a stored timestamp. Naive values are treated as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
