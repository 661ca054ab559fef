"""Canonical UTC timestamp helpers.

Every recurrence identity, stored start/end and range-query bound is produced
by :func:`to_utc_iso`. The output is zero-padded and always in UTC, so lexical
ordering of the strings matches instant ordering.
"""

import time
from datetime import date, datetime, timedelta, timezone
from typing import Union

CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

DateLike = Union[datetime, date, str]


def ensure_utc(value: Union[datetime, date]) -> datetime:
    """Return an aware UTC datetime.

    Dates become midnight UTC. Naive datetimes are treated as UTC (floating
    times have no better anchor).
    """
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_iso(value: DateLike) -> str:
    """Format a datetime, date or ISO string as ``YYYY-MM-DDTHH:MM:SSZ``."""
    if isinstance(value, str):
        value = parse_iso(value)
    return ensure_utc(value).strftime(CANONICAL_FORMAT)


def parse_iso(text: str) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Accepts full timestamps with ``Z`` or a numeric offset, naive timestamps
    (read as UTC) and date-only values (UTC midnight).

    Raises:
        ValueError: If the text is not ISO-8601
    """
    if not isinstance(text, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(text).__name__}")

    candidate = text.strip()
    if not candidate:
        raise ValueError("Empty timestamp")

    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"

    if len(candidate) == 10:
        return ensure_utc(date.fromisoformat(candidate))

    return ensure_utc(datetime.fromisoformat(candidate))


def coerce_datetime(value: DateLike) -> datetime:
    """Accept a datetime, date or ISO string and return aware UTC."""
    if isinstance(value, str):
        return parse_iso(value)
    return ensure_utc(value)


def to_epoch_ms(value: datetime) -> int:
    return int(ensure_utc(value).timestamp() * 1000)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def default_window(days: int = 30) -> tuple:
    """Window from now to ``days`` ahead, as canonical strings."""
    start = utc_now()
    return to_utc_iso(start), to_utc_iso(start + timedelta(days=days))
