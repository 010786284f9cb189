from datetime import date, datetime, timedelta
from typing import List, Optional
import calendar

import pytz

from railfare.config import settings
from railfare.types import TIME_BAND_HOURS, TimeBand, UPSTREAM_DATE_FORMAT


def get_current_datetime(tz: Optional[str] = None) -> datetime:
    """Current datetime in the upstream's timezone (the lookup window starts there)."""
    return datetime.now(pytz.timezone(tz or settings.TZ))


def today(tz: Optional[str] = None) -> date:
    return get_current_datetime(tz).date()


def band_for_hour(hour: int) -> Optional[TimeBand]:
    for band, (start, end) in TIME_BAND_HOURS.items():
        if start <= hour < end:
            return band
    return None


def format_upstream_date(value: date) -> str:
    return value.strftime(UPSTREAM_DATE_FORMAT)


def window_dates(start: date, days: int) -> List[date]:
    """Every date of the lookup window, start included."""
    return [start + timedelta(days=i) for i in range(days)]


def is_month_within_window(month: int, start: date, days: int) -> bool:
    """True if any day of the window falls into the given month (1-12)."""
    return any(d.month == month for d in window_dates(start, days))


def month_name(month: int) -> str:
    return calendar.month_name[month]
