from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum


class PeriodType(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class Algorithm(StrEnum):
    MOVING_AVERAGE = "moving_average"
    LINEAR_REGRESSION = "linear_regression"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"


class Trend(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"


class ForecastStatus(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    EXPIRED = "expired"


class AlertType(StrEnum):
    FORECAST_EXCEEDS_BUDGET = "forecast_exceeds_budget"
    UNUSUAL_SPIKE = "unusual_spike"


class AlertSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecommendationType(StrEnum):
    INCREASE_BUDGET = "increase_budget"
    REVIEW_CATEGORY = "review_category"
    SAVE_MORE = "save_more"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Transaction:
    date: date
    amount: float
    category: str | None = None


@dataclass
class Budget:
    amount: float
    category: str | None = None


@dataclass
class HistoricalPoint:
    """One calendar month of spend, dated on the first of the month."""

    date: date
    amount: float


@dataclass
class Prediction:
    date: date
    predicted_amount: float
    confidence_lower: float
    confidence_upper: float
    confidence_level: float = 95.0


@dataclass
class SeasonalFactor:
    month: int
    factor: float
    event: str | None = None


@dataclass
class AggregateForecast:
    total_predicted: float
    average_monthly: float
    trend: Trend
    trend_percentage: float


@dataclass
class ModelMetadata:
    algorithm: Algorithm
    accuracy_score: float
    rmse: float
    mae: float
    training_data_points: int
    last_trained: datetime


@dataclass
class BudgetComparison:
    budget_amount: float | None = None
    forecast_vs_budget: float | None = None
    will_exceed: bool = False


@dataclass
class Comparison:
    vs_budget: BudgetComparison = field(default_factory=BudgetComparison)


@dataclass
class Alert:
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    triggered_at: datetime = field(default_factory=datetime.now)
    acknowledged: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


@dataclass
class Recommendation:
    recommendation_type: RecommendationType
    title: str
    description: str
    priority: Priority
    impact_amount: float | None = None


@dataclass
class AccuracyTrackingEntry:
    prediction_date: date
    predicted_amount: float
    actual_amount: float
    error_percentage: float
    recorded_at: datetime = field(default_factory=datetime.now)


@dataclass
class ForecastPeriod:
    start_date: date
    end_date: date
    period_type: PeriodType


@dataclass
class Forecast:
    user_id: str
    forecast_period: ForecastPeriod
    predictions: list[Prediction]
    aggregate_forecast: AggregateForecast
    model_metadata: ModelMetadata
    category: str | None = None
    seasonal_factors: list[SeasonalFactor] = field(default_factory=list)
    comparison: Comparison = field(default_factory=Comparison)
    alerts: list[Alert] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    accuracy_tracking: list[AccuracyTrackingEntry] = field(default_factory=list)
    status: ForecastStatus = ForecastStatus.ACTIVE
    id: int | None = None
    created_at: datetime | None = None

    def is_expired(self, today: date | None = None) -> bool:
        return (today or date.today()) > self.forecast_period.end_date

    def days_remaining(self, today: date | None = None) -> int:
        return (self.forecast_period.end_date - (today or date.today())).days

    def is_current(self, today: date | None = None) -> bool:
        """True when today falls inside the forecast window."""
        target = today or date.today()
        return self.forecast_period.start_date <= target <= self.forecast_period.end_date

    @property
    def tracked_accuracy(self) -> float | None:
        """Stored accuracy score, or None until a month has been tracked."""
        if not self.accuracy_tracking:
            return None
        return self.model_metadata.accuracy_score

    @property
    def unacknowledged_alerts(self) -> list[Alert]:
        return [a for a in self.alerts if not a.acknowledged]

    def has_tracked_month(self, month: date) -> bool:
        return any(
            (e.prediction_date.year, e.prediction_date.month) == (month.year, month.month)
            for e in self.accuracy_tracking
        )


def refresh_status(forecast: Forecast, today: date | None = None) -> bool:
    """Expire an active forecast whose window has closed.

    Called on every read and before every write. Returns True if the status
    changed.
    """
    if forecast.status == ForecastStatus.ACTIVE and forecast.is_expired(today):
        forecast.status = ForecastStatus.EXPIRED
        return True
    return False
