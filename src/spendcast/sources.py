"""Collaborator interfaces the forecasting core depends on.

The PostgreSQL ``Registry`` implements all of them; tests substitute
in-memory fakes.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from spendcast.models.forecast import (
    AccuracyTrackingEntry,
    Alert,
    Budget,
    Forecast,
    ForecastStatus,
    PeriodType,
    Transaction,
)


class TransactionSource(Protocol):
    def fetch_transactions(
        self, user_id: str, category: str | None, start_date: date, end_date: date,
    ) -> list[Transaction]: ...


class BudgetSource(Protocol):
    def fetch_active_budget(self, user_id: str, category: str | None) -> Budget | None: ...


class ActualSpendingSource(Protocol):
    def fetch_actual_spending(
        self, user_id: str, category: str | None, month_start: date, month_end: date,
    ) -> float | None: ...


class ForecastStore(Protocol):
    def save_forecast(self, forecast: Forecast) -> int: ...

    def get_forecast(self, forecast_id: int) -> Forecast | None: ...

    def list_forecasts(
        self,
        user_id: str,
        status: ForecastStatus | None = ForecastStatus.ACTIVE,
        category: str | None = None,
        period_type: PeriodType | None = None,
    ) -> list[Forecast]: ...

    def list_forecasts_with_unacknowledged_alerts(self, user_id: str) -> list[Forecast]: ...

    def append_accuracy_entry(self, forecast_id: int, entry: AccuracyTrackingEntry) -> bool: ...

    def update_forecast_tracking(self, forecast: Forecast, window: int) -> float: ...

    def update_forecast_status(self, forecast_id: int, status: ForecastStatus) -> None: ...

    def update_forecast_alerts(self, forecast_id: int, alerts: list[Alert]) -> None: ...

    def get_users_with_trackable_forecasts(self, expired_since: date) -> list[str]: ...
