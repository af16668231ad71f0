"""Time helpers. All engine timestamps are naive UTC datetimes."""
from datetime import datetime, timedelta, timezone

DAYS_PER_MONTH = 30


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_days(moment: datetime, days: int | float) -> datetime:
    """Shift a moment forward by a number of days."""
    return moment + timedelta(days=days)


def months_elapsed(since: datetime, now: datetime) -> int:
    """Whole 30-day months elapsed between two moments."""
    if now <= since:
        return 0
    return int((now - since) / timedelta(days=DAYS_PER_MONTH))
