from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings
from models import PeriodType


@dataclass(frozen=True)
class Period:
    start: date
    end: date

    @property
    def length_days(self) -> int:
        return period_length_days(self.start, self.end)


def local_today(timezone: Optional[str] = None) -> date:
    tz = ZoneInfo(timezone or get_settings().timezone)
    return datetime.now(tz).date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = d.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def year_end(d: date) -> date:
    return date(d.year, 12, 31)


def week_start_aligned(today: date, anchor: date) -> date:
    """Most recent date on or before `today` sharing `anchor`'s weekday."""
    days_since = (today.weekday() - anchor.weekday()) % 7
    return today - timedelta(days=days_since)


def period_length_days(start: date, end: date) -> int:
    """Inclusive day count; months and partial periods differ in length."""
    return (end - start).days + 1


def current_period_dates(
    period_type: PeriodType, anchor_start: date, *, today: Optional[date] = None
) -> Period:
    today = today or local_today()
    if period_type == PeriodType.monthly:
        return Period(month_start(today), month_end(today))
    if period_type == PeriodType.weekly:
        start = week_start_aligned(today, anchor_start)
        return Period(start, start + timedelta(days=6))
    if period_type == PeriodType.yearly:
        return Period(date(today.year, 1, 1), year_end(today))
    raise ValueError(f"Unsupported period type: {period_type}")


def next_period_dates(period_type: PeriodType, current_end: date) -> Period:
    start = current_end + timedelta(days=1)
    if period_type == PeriodType.monthly:
        return Period(start, month_end(start))
    if period_type == PeriodType.weekly:
        return Period(start, start + timedelta(days=6))
    if period_type == PeriodType.yearly:
        return Period(start, year_end(start))
    raise ValueError(f"Unsupported period type: {period_type}")


def previous_period_dates(start: date, end: date) -> Period:
    """The period of equal length ending the day before `start`."""
    prev_end = start - timedelta(days=1)
    prev_start = prev_end - timedelta(days=(end - start).days)
    return Period(prev_start, prev_end)


def default_start_date(period_type: PeriodType, *, today: Optional[date] = None) -> date:
    today = today or local_today()
    if period_type == PeriodType.monthly:
        return month_start(today)
    if period_type == PeriodType.weekly:
        # weeks start on Sunday unless the budget says otherwise
        return today - timedelta(days=(today.weekday() + 1) % 7)
    if period_type == PeriodType.yearly:
        return date(today.year, 1, 1)
    raise ValueError(f"Unsupported period type: {period_type}")
