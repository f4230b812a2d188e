"""
Calendar arithmetic for pay and bill cadences.

All "today" lookups resolve to a civil date in one reference timezone so a
deposit or due date never shifts by a day around midnight UTC.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Sequence
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from spendability.domain.exceptions import InvalidScheduleError
from spendability.domain.models import (
    ANNUALLY,
    BIWEEKLY,
    MONTHLY,
    ONE_TIME,
    QUARTERLY,
    SEMIMONTHLY,
    WEEKLY,
)

REFERENCE_TIMEZONE = "America/Los_Angeles"
# Days past a month's end clamp to its last day, so 31 means "end of month"
LAST_DAY_OF_MONTH = 31
DEFAULT_DAYS_OF_MONTH = (15, LAST_DAY_OF_MONTH)

_FIXED_STEP_DAYS = {WEEKLY: 7, BIWEEKLY: 14}
_MONTH_STEPS = {MONTHLY: 1, QUARTERLY: 3, ANNUALLY: 12}

# Spellings found in stored settings and bill documents
_CADENCE_ALIASES = {
    "bi-weekly": BIWEEKLY,
    "fortnightly": BIWEEKLY,
    "bi-monthly": SEMIMONTHLY,
    "semi-monthly": SEMIMONTHLY,
    "twice-monthly": SEMIMONTHLY,
    "annual": ANNUALLY,
    "yearly": ANNUALLY,
    "onetime": ONE_TIME,
    "once": ONE_TIME,
}


def normalize_cadence(value: Optional[str]) -> str:
    """Canonical cadence name; empty values mean a one-time event"""
    if not value:
        return ONE_TIME
    key = value.strip().lower().replace("_", "-")
    return _CADENCE_ALIASES.get(key, key)


def today_in_reference_tz(tz_name: str = REFERENCE_TIMEZONE) -> date:
    """Current civil date in the reference timezone"""
    return datetime.now(ZoneInfo(tz_name)).date()


def days_until(target: date, today: Optional[date] = None) -> int:
    """Whole days from today until target, never negative"""
    if today is None:
        today = today_in_reference_tz()
    return max(0, (target - today).days)


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length"""
    return from_date + relativedelta(months=months)


def adjust_for_weekend(value: date) -> date:
    """Move Saturday and Sunday deposits back to the preceding Friday"""
    weekday = value.weekday()
    if weekday == 5:
        return value - timedelta(days=1)
    if weekday == 6:
        return value - timedelta(days=2)
    return value


def _semimonthly_dates(year: int, month: int, days_of_month: Sequence[int]) -> List[date]:
    last_day = calendar.monthrange(year, month)[1]
    return sorted({date(year, month, min(day, last_day)) for day in days_of_month})


def _check_days_of_month(days_of_month: Sequence[int]) -> None:
    if not days_of_month or any(day < 1 or day > 31 for day in days_of_month):
        raise InvalidScheduleError(f"Invalid semi-monthly days: {list(days_of_month)}")


def advance(cadence: str, from_date: date, days_of_month: Sequence[int] = DEFAULT_DAYS_OF_MONTH) -> date:
    """
    Next occurrence of a cadence strictly after from_date.

    - weekly / biweekly: +7 / +14 days
    - semimonthly: the nearer later of the two fixed days-of-month
      (a day past the month's end clamps to its last day)
    - monthly / quarterly / annually: calendar months, day clamped

    Raises:
        InvalidScheduleError: Unknown cadence or bad days-of-month
    """
    if cadence in _FIXED_STEP_DAYS:
        return from_date + timedelta(days=_FIXED_STEP_DAYS[cadence])

    if cadence in _MONTH_STEPS:
        return add_months(from_date, _MONTH_STEPS[cadence])

    if cadence == SEMIMONTHLY:
        _check_days_of_month(days_of_month)
        first_of_month = from_date.replace(day=1)
        for offset in range(3):
            month_start = add_months(first_of_month, offset)
            for candidate in _semimonthly_dates(month_start.year, month_start.month, days_of_month):
                if candidate > from_date:
                    return candidate

    raise InvalidScheduleError(f"Unknown cadence: {cadence!r}")


def retreat(cadence: str, from_date: date, days_of_month: Sequence[int] = DEFAULT_DAYS_OF_MONTH) -> date:
    """Previous occurrence of a cadence strictly before from_date"""
    if cadence in _FIXED_STEP_DAYS:
        return from_date - timedelta(days=_FIXED_STEP_DAYS[cadence])

    if cadence in _MONTH_STEPS:
        return add_months(from_date, -_MONTH_STEPS[cadence])

    if cadence == SEMIMONTHLY:
        _check_days_of_month(days_of_month)
        first_of_month = from_date.replace(day=1)
        for offset in range(3):
            month_start = add_months(first_of_month, -offset)
            for candidate in reversed(_semimonthly_dates(month_start.year, month_start.month, days_of_month)):
                if candidate < from_date:
                    return candidate

    raise InvalidScheduleError(f"Unknown cadence: {cadence!r}")


def next_occurrence(
    cadence: str,
    anchor: date,
    on_or_after: date,
    days_of_month: Sequence[int] = DEFAULT_DAYS_OF_MONTH,
) -> date:
    """
    First occurrence of an anchored schedule on or after a date.

    Month-based cadences are computed from the anchor (anchor + n months)
    rather than by repeated stepping, so a schedule anchored on the 31st
    returns to the 31st after passing through a short month.
    """
    if anchor >= on_or_after:
        return anchor

    if cadence in _FIXED_STEP_DAYS:
        step = _FIXED_STEP_DAYS[cadence]
        periods = -(-(on_or_after - anchor).days // step)  # ceiling division
        return anchor + timedelta(days=periods * step)

    if cadence in _MONTH_STEPS:
        step = _MONTH_STEPS[cadence]
        months_apart = (on_or_after.year - anchor.year) * 12 + on_or_after.month - anchor.month
        n = max(0, months_apart // step - 1)
        candidate = add_months(anchor, n * step)
        while candidate < on_or_after:
            n += 1
            candidate = add_months(anchor, n * step)
        return candidate

    if cadence == SEMIMONTHLY:
        return advance(cadence, on_or_after - timedelta(days=1), days_of_month)

    raise InvalidScheduleError(f"Unknown cadence: {cadence!r}")


def occurrences_between(
    cadence: str,
    anchor: date,
    start: date,
    end: date,
    days_of_month: Sequence[int] = DEFAULT_DAYS_OF_MONTH,
) -> Iterator[date]:
    """Yield every occurrence in [start, end], ascending"""
    current = next_occurrence(cadence, anchor, start, days_of_month)
    while current <= end:
        yield current
        current = next_occurrence(cadence, anchor, current + timedelta(days=1), days_of_month)
