"""
Date helpers for subscription periods.
All datetimes are naive UTC, matching what the database columns store.
"""
import calendar
from datetime import datetime, timezone


def utcnow():
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(value):
    """Convert a Stripe unix timestamp to naive UTC. None passes through."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def add_months(value, months):
    """Add calendar months, clamping the day to the end of the target month.

    Args:
        value: Starting datetime
        months: Number of months to add (may be negative)

    Returns:
        Shifted datetime with the same time of day
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
