from datetime import date, timedelta

import pytest

from models import PeriodType
from periods import (
    Period,
    current_period_dates,
    default_start_date,
    next_period_dates,
    period_length_days,
    previous_period_dates,
)


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2024, 2, 15), Period(date(2024, 2, 1), date(2024, 2, 29))),
        (date(2023, 2, 1), Period(date(2023, 2, 1), date(2023, 2, 28))),
        (date(2024, 12, 31), Period(date(2024, 12, 1), date(2024, 12, 31))),
    ],
)
def test_monthly_period_is_calendar_month(today: date, expected: Period) -> None:
    assert current_period_dates(PeriodType.monthly, date(2020, 5, 17), today=today) == expected


def test_weekly_period_aligns_to_anchor_weekday() -> None:
    anchor = date(2024, 1, 3)  # Wednesday
    for offset in range(120):
        today = date(2024, 3, 1) + timedelta(days=offset)
        period = current_period_dates(PeriodType.weekly, anchor, today=today)

        assert period.start.weekday() == anchor.weekday()
        assert period.start <= today <= period.end
        assert period.end - period.start == timedelta(days=6)
        assert period.length_days == 7


def test_yearly_period() -> None:
    period = current_period_dates(PeriodType.yearly, date(2020, 1, 1), today=date(2024, 7, 4))
    assert period == Period(date(2024, 1, 1), date(2024, 12, 31))


def test_next_period_follows_current_end() -> None:
    assert next_period_dates(PeriodType.monthly, date(2024, 1, 31)) == Period(
        date(2024, 2, 1), date(2024, 2, 29)
    )
    assert next_period_dates(PeriodType.weekly, date(2024, 1, 9)) == Period(
        date(2024, 1, 10), date(2024, 1, 16)
    )
    assert next_period_dates(PeriodType.yearly, date(2024, 12, 31)) == Period(
        date(2025, 1, 1), date(2025, 12, 31)
    )


def test_previous_period_mirrors_length() -> None:
    previous = previous_period_dates(date(2024, 3, 1), date(2024, 3, 31))

    assert previous.end == date(2024, 2, 29)
    assert previous.start == date(2024, 1, 30)
    assert previous.length_days == period_length_days(date(2024, 3, 1), date(2024, 3, 31))


def test_default_start_dates() -> None:
    wednesday = date(2024, 1, 3)
    assert default_start_date(PeriodType.monthly, today=wednesday) == date(2024, 1, 1)
    assert default_start_date(PeriodType.weekly, today=wednesday) == date(2023, 12, 31)
    assert default_start_date(PeriodType.weekly, today=date(2024, 1, 7)) == date(2024, 1, 7)
    assert default_start_date(PeriodType.yearly, today=wednesday) == date(2024, 1, 1)
