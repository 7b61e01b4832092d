"""FunnelSync — Period Resolver.

Pure functions for canonical reporting periods:
  - calendar months (1st .. last day)
  - ISO weeks (Monday .. Sunday)
  - "all time", clamped to the vendor lookback ceiling

No function here reads the wall clock; callers pass `today` from the
injected clock.
"""

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from funnelsync.core.errors import InvalidDateRange


class PeriodType(str, Enum):
    """Summary granularity."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PeriodRange(BaseModel):
    """Inclusive date-only range."""

    start: date
    end: date

    model_config = {"frozen": True}


class Period(BaseModel):
    """A canonical reporting period."""

    period_type: PeriodType
    start: date
    end: date
    period_id: str

    model_config = {"frozen": True}

    @property
    def range(self) -> PeriodRange:
        return PeriodRange(start=self.start, end=self.end)


# ─────────────────────────────────────────────
# BOUNDARIES
# ─────────────────────────────────────────────


def month_boundaries(year: int, month: int) -> PeriodRange:
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return PeriodRange(start=date(year, month, 1), end=date(year, month, last_day))


def iso_week_boundaries(any_date: date) -> PeriodRange:
    """Monday..Sunday of the ISO week containing `any_date`."""
    start = any_date - timedelta(days=any_date.weekday())
    return PeriodRange(start=start, end=start + timedelta(days=6))


def is_monday(d: date) -> bool:
    return d.weekday() == 0


def subtract_months(d: date, months: int) -> date:
    """Step back whole months, clamping the day to the target month's length."""
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def lookback_floor(today: date, lookback_months: int) -> date:
    """Earliest date a vendor will still serve."""
    return subtract_months(today, lookback_months)


def all_time_range(
    earliest_activity: Optional[date],
    lookback_months: int,
    today: date,
) -> PeriodRange:
    """Account lifetime, clamped to the vendor lookback limit."""
    floor = lookback_floor(today, lookback_months)
    start = max(earliest_activity, floor) if earliest_activity else floor
    return PeriodRange(start=start, end=today)


def validate_range(
    start: date,
    end: date,
    today: date,
    lookback_months: int,
) -> None:
    """Fast-fail window check, run before any vendor call.

    Raises InvalidDateRange when the window is empty or inverted, ends after
    the current month, or starts before the vendor lookback floor.
    """
    if start >= end:
        raise InvalidDateRange(f"Start {start} must be before end {end}")

    month_end = month_boundaries(today.year, today.month).end
    if end > month_end:
        raise InvalidDateRange(f"End {end} is beyond the current month ({month_end})")

    floor = lookback_floor(today, lookback_months)
    if start < floor:
        raise InvalidDateRange(
            f"Start {start} precedes the {lookback_months}-month lookback limit ({floor})"
        )


# ─────────────────────────────────────────────
# PERIOD IDS
# ─────────────────────────────────────────────


def period_id_for(period_type: PeriodType, start: date) -> str:
    """`YYYY-MM` for months, `YYYY-Www` (ISO year + week) for weeks."""
    if period_type == PeriodType.MONTHLY:
        return f"{start.year}-{start.month:02d}"
    iso_year, iso_week, _ = start.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def parse_period_id(period_id: str) -> Period:
    """Inverse of period_id_for."""
    try:
        if "-W" in period_id:
            year_str, week_str = period_id.split("-W")
            start = date.fromisocalendar(int(year_str), int(week_str), 1)
            return period_for(PeriodType.WEEKLY, start)
        year_str, month_str = period_id.split("-")
        return period_for(PeriodType.MONTHLY, date(int(year_str), int(month_str), 1))
    except ValueError as e:
        raise InvalidDateRange(f"Malformed period id {period_id!r}: {e}") from e


def period_for(period_type: PeriodType, start: date) -> Period:
    """Build the period starting at `start`; rejects non-canonical starts."""
    if period_type == PeriodType.WEEKLY:
        if not is_monday(start):
            raise InvalidDateRange(f"Weekly period must start on a Monday, got {start}")
        bounds = iso_week_boundaries(start)
    else:
        if start.day != 1:
            raise InvalidDateRange(
                f"Monthly period must start on the 1st, got {start}"
            )
        bounds = month_boundaries(start.year, start.month)

    return Period(
        period_type=period_type,
        start=bounds.start,
        end=bounds.end,
        period_id=period_id_for(period_type, bounds.start),
    )


def current_period(period_type: PeriodType, today: date) -> Period:
    """The in-progress week or month containing `today`."""
    if period_type == PeriodType.WEEKLY:
        start = iso_week_boundaries(today).start
    else:
        start = date(today.year, today.month, 1)
    return period_for(period_type, start)


def is_period_closed(period: Period, today: date, reporting_lag_days: int = 0) -> bool:
    """True once the period's last day is past the vendor reporting lag."""
    return period.end + timedelta(days=reporting_lag_days) < today


def fetch_window(period: Period, today: date) -> PeriodRange:
    """Dates to request from a vendor: an open period stops at today."""
    return PeriodRange(start=period.start, end=min(period.end, today))
