from datetime import datetime, date, time, timedelta
from typing import Optional, Tuple

import pytz
from fastapi import Header

from errors import ValidationError


class JakartaClock:
    """
    Single time source for every workflow.

    Returns naive wall-clock datetimes in the configured zone (WIB by default)
    so they compare cleanly with what the database hands back.
    """

    def __init__(self, timezone: str = "Asia/Jakarta"):
        self.tz = pytz.timezone(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()


def get_current_user_name(x_user_name: Optional[str] = Header(None)) -> str:
    # No auth layer yet; audit rows fall back to "KOSONGAN"
    if not x_user_name or not x_user_name.strip():
        return "KOSONGAN"
    return x_user_name.strip()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    if month == 12:
        next_month = datetime(year + 1, 1, 1)
    else:
        next_month = datetime(year, month + 1, 1)
    return start, next_month - timedelta(microseconds=1)


def parse_month(bulan: str) -> Tuple[int, int]:
    """Parse a 'YYYY-MM' string."""
    parts = bulan.split("-")
    if len(parts) != 2:
        raise ValidationError("Month must use the YYYY-MM format")
    try:
        year = int(parts[0])
        month = int(parts[1])
    except ValueError:
        raise ValidationError(f"Invalid month: {bulan}")
    if month < 1 or month > 12:
        raise ValidationError(f"Invalid month: {bulan}")
    return year, month


def page_to_offset(page: int, limit: int) -> int:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return (page - 1) * limit
