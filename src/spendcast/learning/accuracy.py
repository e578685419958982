"""Post-hoc accuracy tracking: compare past predictions to realized spend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from spendcast.forecasting.periods import month_end, month_start
from spendcast.models.forecast import (
    AccuracyTrackingEntry,
    Forecast,
    ForecastStatus,
    Prediction,
    refresh_status,
)
from spendcast.sources import ActualSpendingSource, ForecastStore

logger = logging.getLogger(__name__)

DEFAULT_ACCURACY_WINDOW = 10

# Expired forecasts stay trackable this long, so a month that closes after
# the window ends (weekly forecasts) is still recorded.
TRACKING_GRACE_DAYS = 31


@dataclass
class AccuracyUpdateResult:
    forecasts_checked: int = 0
    entries_recorded: int = 0
    months_pending: int = 0


def error_percentage(predicted: float, actual: float) -> float:
    """Signed error of the actual against the prediction, in percent.

    A zero prediction scores 0 when nothing was spent and 100 otherwise.
    """
    if predicted == 0:
        return 0.0 if actual == 0 else 100.0
    return (actual - predicted) / predicted * 100


def rolling_accuracy(
    entries: list[AccuracyTrackingEntry], window: int = DEFAULT_ACCURACY_WINDOW,
) -> float:
    """100 minus the mean absolute error percentage of the latest entries, within [0, 100].

    The registry computes the same score in SQL when it stores tracking results.
    """
    recent = entries[-window:]
    if not recent:
        return 0.0
    avg_error = sum(abs(e.error_percentage) for e in recent) / len(recent)
    return min(100.0, max(0.0, 100.0 - avg_error))


def tracking_cutoff(today: date) -> date:
    """Earliest end date of an expired forecast that is still tracked."""
    return today - timedelta(days=TRACKING_GRACE_DAYS)


class AccuracyTracker:
    """Records realized spend against past predictions of active and recently expired forecasts.

    A month is tracked once it has closed. Entries are appended through the
    store's conditional insert keyed by (forecast, prediction month), so
    overlapping runs never duplicate a month, and the rolling score is
    recomputed by the store from the stored entries.
    """

    def __init__(
        self,
        store: ForecastStore,
        actuals: ActualSpendingSource,
        window: int = DEFAULT_ACCURACY_WINDOW,
    ) -> None:
        self._store = store
        self._actuals = actuals
        self._window = window

    def update(self, user_id: str, today: date | None = None) -> AccuracyUpdateResult:
        target = today or date.today()
        result = AccuracyUpdateResult()

        for forecast in self._trackable_forecasts(user_id, target):
            result.forecasts_checked += 1
            recorded, pending = self._track_forecast(forecast, target)
            result.entries_recorded += recorded
            result.months_pending += pending

        if result.entries_recorded:
            logger.info(
                "Accuracy update for user=%s: %d entries across %d forecasts",
                user_id, result.entries_recorded, result.forecasts_checked,
            )
        return result

    def _trackable_forecasts(self, user_id: str, today: date) -> list[Forecast]:
        forecasts = self._store.list_forecasts(user_id, status=ForecastStatus.ACTIVE)
        cutoff = tracking_cutoff(today)
        forecasts.extend(
            f for f in self._store.list_forecasts(user_id, status=ForecastStatus.EXPIRED)
            if f.forecast_period.end_date >= cutoff
        )
        return forecasts

    def _track_forecast(self, forecast: Forecast, today: date) -> tuple[int, int]:
        recorded = 0
        pending = 0

        for prediction in forecast.predictions:
            if month_end(prediction.date) >= today or forecast.has_tracked_month(prediction.date):
                continue

            entry = self._build_entry(forecast, prediction)
            if entry is None:
                pending += 1
                continue

            if self._store.append_accuracy_entry(forecast.id, entry):  # type: ignore[arg-type]
                forecast.accuracy_tracking.append(entry)
                recorded += 1
            else:
                logger.debug(
                    "Forecast %s month %s already tracked by another run",
                    forecast.id, month_start(prediction.date),
                )

        status_changed = refresh_status(forecast, today)
        if recorded:
            forecast.model_metadata.accuracy_score = self._store.update_forecast_tracking(
                forecast, self._window,
            )
        elif status_changed:
            self._store.update_forecast_status(forecast.id, forecast.status)  # type: ignore[arg-type]

        return recorded, pending

    def _build_entry(self, forecast: Forecast, prediction: Prediction) -> AccuracyTrackingEntry | None:
        actual = self._actuals.fetch_actual_spending(
            forecast.user_id,
            forecast.category,
            month_start(prediction.date),
            month_end(prediction.date),
        )
        if actual is None:
            logger.debug(
                "No actual spend yet for forecast %s month %s",
                forecast.id, month_start(prediction.date),
            )
            return None

        actual = float(actual)
        return AccuracyTrackingEntry(
            prediction_date=prediction.date,
            predicted_amount=prediction.predicted_amount,
            actual_amount=actual,
            error_percentage=error_percentage(prediction.predicted_amount, actual),
            recorded_at=datetime.now(),
        )
