"""Forecast service: generation, lookup, accuracy tracking and dashboard summary.

Generation pipeline:
  periods -> monthly history -> model fit -> aggregate + seasonal factors
  -> budget comparison -> recommendations/alerts -> persisted Forecast

Nothing is written until every stage has succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime

from pydantic import ValidationError

from spendcast.advisory.summary import DashboardSummary, summarize_forecasts
from spendcast.config import AppConfig
from spendcast.errors import InsufficientHistoryError, InvalidForecastRequestError, NotFoundError
from spendcast.forecasting.advisories import AdvisoryEngine
from spendcast.forecasting.aggregate import calculate_aggregate
from spendcast.forecasting.algorithms import DEFAULT_ALPHA, fit_forecast
from spendcast.forecasting.budget import load_budget_comparison
from spendcast.forecasting.history import load_history
from spendcast.forecasting.periods import calculate_periods, forecast_dates
from spendcast.forecasting.seasonal import detect_seasonal_factors
from spendcast.learning.accuracy import DEFAULT_ACCURACY_WINDOW, AccuracyTracker, AccuracyUpdateResult
from spendcast.models.forecast import (
    Forecast,
    ForecastPeriod,
    ForecastStatus,
    ModelMetadata,
    PeriodType,
    refresh_status,
)
from spendcast.models.request import ForecastRequest
from spendcast.registry.queries import Registry
from spendcast.sources import ActualSpendingSource, BudgetSource, ForecastStore, TransactionSource

logger = logging.getLogger(__name__)

MIN_HISTORY_MONTHS = 3


class ForecastService:
    """Stateless entry point; every collaborator is passed in."""

    def __init__(
        self,
        store: ForecastStore,
        transactions: TransactionSource,
        budgets: BudgetSource,
        actuals: ActualSpendingSource,
        *,
        min_history_months: int = MIN_HISTORY_MONTHS,
        smoothing_alpha: float = DEFAULT_ALPHA,
        accuracy_window: int = DEFAULT_ACCURACY_WINDOW,
        default_confidence_level: float = 95.0,
        advisory: AdvisoryEngine | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._transactions = transactions
        self._budgets = budgets
        self._actuals = actuals
        self._min_history_months = min_history_months
        self._smoothing_alpha = smoothing_alpha
        self._accuracy_window = accuracy_window
        self._default_confidence_level = default_confidence_level
        self._advisory = advisory or AdvisoryEngine()
        self._clock = clock

    @classmethod
    def from_registry(cls, registry: Registry, config: AppConfig) -> ForecastService:
        return cls(
            registry, registry, registry, registry,
            min_history_months=config.min_history_months,
            smoothing_alpha=config.smoothing_alpha,
            accuracy_window=config.accuracy_window,
            default_confidence_level=config.default_confidence_level,
        )

    def _today(self) -> date:
        return self._clock().date()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_forecast(self, user_id: str, request: ForecastRequest | dict | None = None) -> Forecast:
        """Fit, derive and persist a forecast for the user.

        Raises InvalidForecastRequestError for bad options and
        InsufficientHistoryError when too few months of history exist.
        """
        options = self._validate(request)
        now = self._clock()

        window = calculate_periods(options.period_type, now)
        history = load_history(self._transactions, user_id, options.category, window)
        if len(history) < self._min_history_months:
            logger.info(
                "Forecast refused for user=%s category=%s: %d of %d months",
                user_id, options.category, len(history), self._min_history_months,
            )
            raise InsufficientHistoryError(len(history), self._min_history_months)

        predictions, fit = fit_forecast(
            options.algorithm,
            history,
            forecast_dates(window),
            options.confidence_level,
            alpha=self._smoothing_alpha,
        )
        aggregate = calculate_aggregate(predictions, history)
        seasonal = detect_seasonal_factors(history)
        comparison = load_budget_comparison(
            self._budgets, user_id, options.category, aggregate.total_predicted,
        )

        forecast = Forecast(
            user_id=user_id,
            category=options.category,
            forecast_period=ForecastPeriod(
                start_date=window.forecast_start,
                end_date=window.forecast_end,
                period_type=options.period_type,
            ),
            predictions=predictions,
            aggregate_forecast=aggregate,
            seasonal_factors=seasonal,
            model_metadata=ModelMetadata(
                algorithm=options.algorithm,
                accuracy_score=fit.accuracy_score,
                rmse=fit.rmse,
                mae=fit.mae,
                training_data_points=len(history),
                last_trained=now,
            ),
            comparison=comparison,
            recommendations=self._advisory.recommendations(aggregate, comparison),
            alerts=self._advisory.alerts(aggregate, comparison, now),
        )
        refresh_status(forecast, now.date())
        self._store.save_forecast(forecast)

        logger.info(
            "Generated %s %s forecast %s for user=%s category=%s: total=%.2f trend=%s",
            options.period_type.value, options.algorithm.value, forecast.id,
            user_id, options.category, aggregate.total_predicted, aggregate.trend.value,
        )
        return forecast

    def _validate(self, request: ForecastRequest | dict | None) -> ForecastRequest:
        if isinstance(request, ForecastRequest):
            return request
        data = dict(request or {})
        data.setdefault("confidence_level", self._default_confidence_level)
        try:
            return ForecastRequest.model_validate(data)
        except ValidationError as e:
            logger.warning("Rejected forecast request: %s", e.errors())
            raise InvalidForecastRequestError(str(e)) from e

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_forecast_by_id(self, forecast_id: int, user_id: str) -> Forecast:
        forecast = self._store.get_forecast(forecast_id)
        if forecast is None or forecast.user_id != user_id:
            raise NotFoundError(f"Forecast {forecast_id} not found")
        self._expire_if_closed(forecast)
        return forecast

    def get_user_forecasts(
        self,
        user_id: str,
        category: str | None = None,
        period_type: PeriodType | str | None = None,
        status: ForecastStatus | None = ForecastStatus.ACTIVE,
    ) -> list[Forecast]:
        """Forecasts for the user, newest window first (active only by default)."""
        forecasts = self._store.list_forecasts(
            user_id,
            status=status,
            category=category,
            period_type=PeriodType(period_type) if period_type is not None else None,
        )
        result: list[Forecast] = []
        for forecast in forecasts:
            self._expire_if_closed(forecast)
            if status is None or forecast.status == status:
                result.append(forecast)
        return result

    def get_unacknowledged_alerts(self, user_id: str) -> list[Forecast]:
        """Active forecasts with an unacknowledged high or critical alert."""
        forecasts = self._store.list_forecasts_with_unacknowledged_alerts(user_id)
        result: list[Forecast] = []
        for forecast in forecasts:
            self._expire_if_closed(forecast)
            if forecast.status == ForecastStatus.ACTIVE:
                result.append(forecast)
        return result

    def _expire_if_closed(self, forecast: Forecast) -> None:
        if refresh_status(forecast, self._today()) and forecast.id is not None:
            logger.info("Forecast %s expired (window ended %s)", forecast.id, forecast.forecast_period.end_date)
            self._store.update_forecast_status(forecast.id, forecast.status)

    def acknowledge_alert(self, forecast_id: int, user_id: str, alert_id: str) -> Forecast:
        forecast = self.get_forecast_by_id(forecast_id, user_id)
        for alert in forecast.alerts:
            if alert.id == alert_id:
                alert.acknowledged = True
                break
        else:
            raise NotFoundError(f"Alert {alert_id} not found on forecast {forecast_id}")

        self._store.update_forecast_alerts(forecast_id, forecast.alerts)
        return forecast

    # ------------------------------------------------------------------
    # Tracking and summary
    # ------------------------------------------------------------------

    def update_forecast_accuracy(self, user_id: str) -> AccuracyUpdateResult:
        tracker = AccuracyTracker(self._store, self._actuals, window=self._accuracy_window)
        return tracker.update(user_id, today=self._today())

    def get_forecast_summary(self, user_id: str) -> DashboardSummary:
        forecasts = self.get_user_forecasts(user_id)
        return summarize_forecasts(forecasts, today=self._today())
