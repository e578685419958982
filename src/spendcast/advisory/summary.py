"""Dashboard roll-up of a user's current forecasts.

Combines:
  - Total predicted spend across forecasts
  - One line per forecast scope (category, predicted, trend, accuracy, days left)
  - Unacknowledged alert counts by severity
  - Average tracked accuracy, overall and per category
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from spendcast.models.forecast import AlertSeverity, Forecast, Trend

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All Categories"


@dataclass
class CategorySummary:
    category: str
    predicted: float
    trend: Trend
    accuracy: float | None  # None until a month has been tracked
    days_remaining: int


@dataclass
class AlertCounts:
    low: int = 0
    medium: int = 0
    high: int = 0
    critical: int = 0
    total_unacknowledged: int = 0


@dataclass
class DashboardSummary:
    total_forecasts: int
    total_predicted_spending: float
    categories: list[CategorySummary] = field(default_factory=list)
    alerts: AlertCounts = field(default_factory=AlertCounts)
    accuracy_overall: float | None = None
    accuracy_by_category: dict[str, float] = field(default_factory=dict)


def summarize_forecasts(forecasts: list[Forecast], today: date | None = None) -> DashboardSummary:
    """Summarize the forecasts whose window contains today."""
    target = today or date.today()
    current = [f for f in forecasts if f.is_current(target)]

    summary = DashboardSummary(
        total_forecasts=len(current),
        total_predicted_spending=0.0,
    )
    tracked: list[float] = []

    for forecast in current:
        predicted = forecast.aggregate_forecast.total_predicted or 0.0
        accuracy = forecast.tracked_accuracy
        summary.total_predicted_spending += predicted
        summary.categories.append(CategorySummary(
            category=forecast.category or ALL_CATEGORIES,
            predicted=predicted,
            trend=forecast.aggregate_forecast.trend,
            accuracy=accuracy,
            days_remaining=forecast.days_remaining(target),
        ))

        for alert in forecast.unacknowledged_alerts:
            summary.alerts.total_unacknowledged += 1
            severity = AlertSeverity(alert.severity)
            setattr(summary.alerts, severity.value, getattr(summary.alerts, severity.value) + 1)

        if accuracy is not None:
            tracked.append(accuracy)
            if forecast.category:
                summary.accuracy_by_category[forecast.category] = accuracy

    if tracked:
        summary.accuracy_overall = sum(tracked) / len(tracked)

    logger.debug(
        "Summary: %d current of %d forecasts, %d unacknowledged alerts",
        len(current), len(forecasts), summary.alerts.total_unacknowledged,
    )
    return summary
