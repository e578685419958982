"""Forecast and lookback windows per period type.

Each period type trades a short look-ahead for enough history to fit a
model: a week ahead needs ~3 months behind, a year ahead needs three years.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from spendcast.models.forecast import PeriodType


@dataclass(frozen=True)
class ForecastWindow:
    forecast_start: date
    forecast_end: date
    historical_start: date
    historical_end: date


# (lookahead months, lookback months); weekly is handled in days
_MONTH_SPANS: dict[PeriodType, tuple[int, int]] = {
    PeriodType.MONTHLY: (1, 12),
    PeriodType.QUARTERLY: (3, 24),
    PeriodType.YEARLY: (12, 36),
}

_WEEKLY_AHEAD_DAYS = 7
_WEEKLY_BEHIND_DAYS = 90


def add_months(d: date, months: int) -> date:
    """Shift a date by whole months, clamping to the target month's last day."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def calculate_periods(period_type: PeriodType, now: datetime | date | None = None) -> ForecastWindow:
    """Derive the forecast and historical windows for a period type."""
    if now is None:
        today = date.today()
    elif isinstance(now, datetime):
        today = now.date()
    else:
        today = now

    period_type = PeriodType(period_type)
    if period_type == PeriodType.WEEKLY:
        return ForecastWindow(
            forecast_start=today,
            forecast_end=today + timedelta(days=_WEEKLY_AHEAD_DAYS),
            historical_start=today - timedelta(days=_WEEKLY_BEHIND_DAYS),
            historical_end=today,
        )

    ahead, behind = _MONTH_SPANS[period_type]
    return ForecastWindow(
        forecast_start=today,
        forecast_end=add_months(today, ahead),
        historical_start=add_months(today, -behind),
        historical_end=today,
    )


def forecast_dates(window: ForecastWindow) -> list[date]:
    """Monthly prediction dates: the forecast start, then every month before the end."""
    dates: list[date] = []
    step = 0
    current = window.forecast_start
    while current < window.forecast_end:
        dates.append(current)
        step += 1
        current = add_months(window.forecast_start, step)
    return dates
