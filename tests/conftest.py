from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import date, datetime

import pytest

from spendcast.learning.accuracy import rolling_accuracy
from spendcast.models.forecast import (
    AccuracyTrackingEntry,
    AlertSeverity,
    AggregateForecast,
    Alert,
    Algorithm,
    Budget,
    Forecast,
    ForecastPeriod,
    ForecastStatus,
    ModelMetadata,
    PeriodType,
    Prediction,
    Transaction,
    Trend,
)


class InMemoryStore:
    """ForecastStore backed by dicts. Reads return copies, like rows loaded from the database."""

    def __init__(self) -> None:
        self.forecasts: dict[int, Forecast] = {}
        self.tracked_months: set[tuple[int, date]] = set()
        self.status_updates: list[tuple[int, ForecastStatus]] = []
        self._next_id = 1

    def save_forecast(self, forecast: Forecast) -> int:
        forecast.id = self._next_id
        forecast.created_at = datetime(2026, 1, 1)
        self._next_id += 1
        self.forecasts[forecast.id] = copy.deepcopy(forecast)
        return forecast.id

    def get_forecast(self, forecast_id: int) -> Forecast | None:
        stored = self.forecasts.get(forecast_id)
        return copy.deepcopy(stored) if stored else None

    def list_forecasts(
        self,
        user_id: str,
        status: ForecastStatus | None = ForecastStatus.ACTIVE,
        category: str | None = None,
        period_type: PeriodType | None = None,
    ) -> list[Forecast]:
        matches = [
            f for f in self.forecasts.values()
            if f.user_id == user_id
            and (status is None or f.status == status)
            and (category is None or f.category == category)
            and (period_type is None or f.forecast_period.period_type == period_type)
        ]
        matches.sort(key=lambda f: (f.forecast_period.start_date, f.id), reverse=True)
        return copy.deepcopy(matches)

    def append_accuracy_entry(self, forecast_id: int, entry: AccuracyTrackingEntry) -> bool:
        key = (forecast_id, entry.prediction_date.replace(day=1))
        if key in self.tracked_months:
            return False
        self.tracked_months.add(key)
        self.forecasts[forecast_id].accuracy_tracking.append(copy.deepcopy(entry))
        return True

    def list_forecasts_with_unacknowledged_alerts(self, user_id: str) -> list[Forecast]:
        urgent = (AlertSeverity.HIGH, AlertSeverity.CRITICAL)
        return [
            f for f in self.list_forecasts(user_id)
            if any(a.severity in urgent for a in f.unacknowledged_alerts)
        ]

    def update_forecast_tracking(self, forecast: Forecast, window: int) -> float:
        stored = self.forecasts[forecast.id]
        stored.model_metadata.accuracy_score = rolling_accuracy(stored.accuracy_tracking, window)
        stored.status = forecast.status
        return stored.model_metadata.accuracy_score

    def update_forecast_status(self, forecast_id: int, status: ForecastStatus) -> None:
        self.status_updates.append((forecast_id, status))
        self.forecasts[forecast_id].status = status

    def update_forecast_alerts(self, forecast_id: int, alerts: list[Alert]) -> None:
        self.forecasts[forecast_id].alerts = copy.deepcopy(alerts)

    def get_users_with_trackable_forecasts(self, expired_since: date) -> list[str]:
        return sorted({
            f.user_id for f in self.forecasts.values()
            if f.status == ForecastStatus.ACTIVE
            or (f.status == ForecastStatus.EXPIRED and f.forecast_period.end_date >= expired_since)
        })


class SpendLedger:
    """Transaction, budget and actual-spend source over an in-memory expense list."""

    def __init__(self) -> None:
        self.expenses: dict[str, list[Transaction]] = {}
        self.budgets: dict[tuple[str, str | None], Budget] = {}

    def add(self, user_id: str, day: date, amount: float, category: str | None = None) -> None:
        self.expenses.setdefault(user_id, []).append(Transaction(date=day, amount=amount, category=category))

    def _select(self, user_id: str, category: str | None, start: date, end: date) -> list[Transaction]:
        return [
            t for t in self.expenses.get(user_id, [])
            if start <= t.date <= end and (category is None or t.category == category)
        ]

    def fetch_transactions(
        self, user_id: str, category: str | None, start_date: date, end_date: date,
    ) -> list[Transaction]:
        return self._select(user_id, category, start_date, end_date)

    def fetch_active_budget(self, user_id: str, category: str | None) -> Budget | None:
        return self.budgets.get((user_id, category))

    def fetch_actual_spending(
        self, user_id: str, category: str | None, month_start: date, month_end: date,
    ) -> float | None:
        selected = self._select(user_id, category, month_start, month_end)
        if not selected:
            return None
        return sum(t.amount for t in selected)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def ledger() -> SpendLedger:
    return SpendLedger()


@pytest.fixture
def make_forecast() -> Callable[..., Forecast]:
    def _make(
        user_id: str = "u1",
        category: str | None = None,
        start: date = date(2026, 1, 15),
        end: date = date(2026, 4, 15),
        amounts: tuple[float, ...] = (500.0, 500.0, 500.0),
        period_type: PeriodType = PeriodType.QUARTERLY,
        trend: Trend = Trend.STABLE,
        status: ForecastStatus = ForecastStatus.ACTIVE,
    ) -> Forecast:
        predictions = [
            Prediction(
                date=date(start.year + (start.month - 1 + i) // 12, (start.month - 1 + i) % 12 + 1, start.day),
                predicted_amount=a,
                confidence_lower=a * 0.8,
                confidence_upper=a * 1.2,
            )
            for i, a in enumerate(amounts)
        ]
        total = sum(amounts)
        return Forecast(
            user_id=user_id,
            category=category,
            forecast_period=ForecastPeriod(start_date=start, end_date=end, period_type=period_type),
            predictions=predictions,
            aggregate_forecast=AggregateForecast(
                total_predicted=total,
                average_monthly=total / len(amounts) if amounts else 0.0,
                trend=trend,
                trend_percentage=0.0,
            ),
            model_metadata=ModelMetadata(
                algorithm=Algorithm.MOVING_AVERAGE,
                accuracy_score=70.0,
                rmse=50.0,
                mae=40.0,
                training_data_points=12,
                last_trained=datetime(2026, 1, 15, 9, 0),
            ),
            status=status,
        )

    return _make
