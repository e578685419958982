from __future__ import annotations

from spendcast.models.forecast import (
    AccuracyTrackingEntry,
    AggregateForecast,
    Alert,
    AlertSeverity,
    AlertType,
    Algorithm,
    Budget,
    BudgetComparison,
    Comparison,
    Forecast,
    ForecastPeriod,
    ForecastStatus,
    HistoricalPoint,
    ModelMetadata,
    PeriodType,
    Prediction,
    Priority,
    Recommendation,
    RecommendationType,
    SeasonalFactor,
    Transaction,
    Trend,
    refresh_status,
)
from spendcast.models.request import ForecastRequest

__all__ = [
    # enums
    "PeriodType",
    "Algorithm",
    "Trend",
    "ForecastStatus",
    "AlertType",
    "AlertSeverity",
    "RecommendationType",
    "Priority",
    # collaborator rows
    "Transaction",
    "Budget",
    # forecast document
    "HistoricalPoint",
    "Prediction",
    "SeasonalFactor",
    "AggregateForecast",
    "ModelMetadata",
    "BudgetComparison",
    "Comparison",
    "Alert",
    "Recommendation",
    "AccuracyTrackingEntry",
    "ForecastPeriod",
    "Forecast",
    "refresh_status",
    # request
    "ForecastRequest",
]
