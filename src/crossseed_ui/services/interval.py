"""
Human-readable sync intervals ("15 minutes", "6 hours", "1 day").

Timestamps are naive UTC datetimes, matching what the database stores.
"""

import re
from datetime import UTC, datetime, timedelta

import structlog

logger = structlog.get_logger()

DEFAULT_INTERVAL = timedelta(hours=1)

_INTERVAL_RE = re.compile(r"^(\d+)\s*(minute|minutes|hour|hours|day|days)$", re.IGNORECASE)

_UNITS = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
}


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def parse_interval(text: str | None) -> timedelta:
    """
    Convert an interval string to a timedelta.

    Unparseable input, including a zero quantity, falls back to one hour
    and logs a warning; the scheduler keeps running on the default rather
    than failing.
    """
    match = _INTERVAL_RE.match((text or "").strip())
    quantity = int(match.group(1)) if match else 0
    if quantity == 0:
        logger.warning("sync_interval_unparseable", interval=text, fallback="1 hour")
        return DEFAULT_INTERVAL

    unit = match.group(2).lower().rstrip("s")
    return quantity * _UNITS[unit]


def is_due(last_run: datetime | None, interval: timedelta, now: datetime | None = None) -> bool:
    """True if never run, or at least ``interval`` has passed since ``last_run``."""
    if last_run is None:
        return True
    now = now or utcnow()
    return now - last_run >= interval


def next_run_time(
    last_run: datetime | None, interval: timedelta, now: datetime | None = None
) -> datetime:
    """``last_run + interval``, or now when it has never run."""
    if last_run is None:
        return now or utcnow()
    return last_run + interval
