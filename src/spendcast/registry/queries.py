from __future__ import annotations

import json
import logging
from datetime import date, datetime

import psycopg

from spendcast.errors import UpstreamDataError
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
    ModelMetadata,
    PeriodType,
    Prediction,
    Priority,
    Recommendation,
    RecommendationType,
    SeasonalFactor,
    Transaction,
    Trend,
)
from spendcast.registry.db import Database

logger = logging.getLogger(__name__)

_FORECAST_COLUMNS = (
    "id, user_id, category, period_type, start_date, end_date, status, "
    "accuracy_score, document, created_at"
)

_URGENT_SEVERITIES = (AlertSeverity.HIGH.value, AlertSeverity.CRITICAL.value)


class Registry:
    """Query layer for forecast documents and the host app's spend tables.

    Implements every collaborator protocol in ``spendcast.sources``.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Transaction history (host app's expenses table)
    # ------------------------------------------------------------------

    def fetch_transactions(
        self, user_id: str, category: str | None, start_date: date, end_date: date,
    ) -> list[Transaction]:
        """Expenses in [start_date, end_date], optionally for one category."""
        conditions = ["user_id = %s", "date >= %s", "date <= %s"]
        params: list = [user_id, start_date, end_date]
        if category is not None:
            conditions.append("category = %s")
            params.append(category)

        try:
            rows = self._db.execute(
                "SELECT date, amount, category FROM expenses "
                f"WHERE {' AND '.join(conditions)} ORDER BY date",
                tuple(params),
            )
        except psycopg.Error as e:
            raise UpstreamDataError(f"Transaction lookup failed for user {user_id}: {e}") from e

        return [
            Transaction(
                date=_as_date(r["date"]),
                amount=float(r["amount"]),
                category=r.get("category"),
            )
            for r in rows
        ]

    def fetch_actual_spending(
        self, user_id: str, category: str | None, month_start: date, month_end: date,
    ) -> float | None:
        """Realized spend for one month, or None when nothing was recorded."""
        conditions = ["user_id = %s", "date >= %s", "date <= %s"]
        params: list = [user_id, month_start, month_end]
        if category is not None:
            conditions.append("category = %s")
            params.append(category)

        try:
            rows = self._db.execute(
                "SELECT COUNT(*) AS n, COALESCE(SUM(amount), 0) AS total FROM expenses "
                f"WHERE {' AND '.join(conditions)}",
                tuple(params),
            )
        except psycopg.Error as e:
            raise UpstreamDataError(f"Actual-spend lookup failed for user {user_id}: {e}") from e

        if not rows or not rows[0]["n"]:
            return None
        return float(rows[0]["total"])

    # ------------------------------------------------------------------
    # Budgets (host app's budgets table)
    # ------------------------------------------------------------------

    def fetch_active_budget(self, user_id: str, category: str | None) -> Budget | None:
        """Active budget for the category, or the user's overall budget when category is None."""
        if category is None:
            query = (
                "SELECT amount, category FROM budgets "
                "WHERE user_id = %s AND is_active = TRUE AND category IS NULL LIMIT 1"
            )
            params: tuple = (user_id,)
        else:
            query = (
                "SELECT amount, category FROM budgets "
                "WHERE user_id = %s AND is_active = TRUE AND category = %s LIMIT 1"
            )
            params = (user_id, category)

        try:
            rows = self._db.execute(query, params)
        except psycopg.Error as e:
            raise UpstreamDataError(f"Budget lookup failed for user {user_id}: {e}") from e

        if not rows:
            return None
        return Budget(amount=float(rows[0]["amount"]), category=rows[0].get("category"))

    # ------------------------------------------------------------------
    # Forecasts
    # ------------------------------------------------------------------

    def save_forecast(self, forecast: Forecast) -> int:
        """Insert a new forecast document. Returns the forecast id."""
        rows = self._db.execute(
            "INSERT INTO spendcast.forecasts "
            "(user_id, category, period_type, start_date, end_date, status, "
            "accuracy_score, document) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING id, created_at",
            (
                forecast.user_id,
                forecast.category,
                forecast.forecast_period.period_type.value,
                forecast.forecast_period.start_date,
                forecast.forecast_period.end_date,
                forecast.status.value,
                forecast.model_metadata.accuracy_score,
                json.dumps(forecast_to_document(forecast)),
            ),
        )
        forecast.id = rows[0]["id"]
        forecast.created_at = rows[0].get("created_at")
        return forecast.id

    def get_forecast(self, forecast_id: int) -> Forecast | None:
        rows = self._db.execute(
            f"SELECT {_FORECAST_COLUMNS} FROM spendcast.forecasts WHERE id = %s",
            (forecast_id,),
        )
        if not rows:
            return None
        entries = self._get_accuracy_entries([forecast_id])
        return _row_to_forecast(rows[0], entries.get(forecast_id, []))

    def list_forecasts(
        self,
        user_id: str,
        status: ForecastStatus | None = ForecastStatus.ACTIVE,
        category: str | None = None,
        period_type: PeriodType | None = None,
    ) -> list[Forecast]:
        """Forecasts for a user, newest window first."""
        conditions = ["user_id = %s"]
        params: list = [user_id]
        if status is not None:
            conditions.append("status = %s")
            params.append(ForecastStatus(status).value)
        if category is not None:
            conditions.append("category = %s")
            params.append(category)
        if period_type is not None:
            conditions.append("period_type = %s")
            params.append(PeriodType(period_type).value)

        rows = self._db.execute(
            f"SELECT {_FORECAST_COLUMNS} FROM spendcast.forecasts "
            f"WHERE {' AND '.join(conditions)} ORDER BY start_date DESC, id DESC",
            tuple(params),
        )
        if not rows:
            return []
        entries = self._get_accuracy_entries([r["id"] for r in rows])
        return [_row_to_forecast(r, entries.get(r["id"], [])) for r in rows]

    def list_forecasts_with_unacknowledged_alerts(self, user_id: str) -> list[Forecast]:
        """Active forecasts carrying an unacknowledged high or critical alert."""
        rows = self._db.execute(
            f"SELECT {_FORECAST_COLUMNS} FROM spendcast.forecasts "
            "WHERE user_id = %s AND status = 'active' AND EXISTS ("
            "SELECT 1 FROM jsonb_array_elements(document->'alerts') AS alert "
            "WHERE NOT COALESCE((alert->>'acknowledged')::boolean, FALSE) "
            "AND alert->>'severity' = ANY(%s)"
            ") ORDER BY start_date DESC, id DESC",
            (user_id, list(_URGENT_SEVERITIES)),
        )
        if not rows:
            return []
        entries = self._get_accuracy_entries([r["id"] for r in rows])
        return [_row_to_forecast(r, entries.get(r["id"], [])) for r in rows]

    def get_users_with_trackable_forecasts(self, expired_since: date) -> list[str]:
        """Users with an active forecast, or one that expired on or after expired_since."""
        rows = self._db.execute(
            "SELECT DISTINCT user_id FROM spendcast.forecasts "
            "WHERE status = 'active' OR (status = 'expired' AND end_date >= %s) "
            "ORDER BY user_id",
            (expired_since,),
        )
        return [r["user_id"] for r in rows]

    def update_forecast_status(self, forecast_id: int, status: ForecastStatus) -> None:
        self._db.execute(
            "UPDATE spendcast.forecasts SET status = %s, updated_at = NOW() WHERE id = %s",
            (ForecastStatus(status).value, forecast_id),
        )

    def update_forecast_alerts(self, forecast_id: int, alerts: list[Alert]) -> None:
        self._db.execute(
            "UPDATE spendcast.forecasts "
            "SET document = jsonb_set(document, '{alerts}', %s::jsonb), updated_at = NOW() "
            "WHERE id = %s",
            (json.dumps([_alert_to_dict(a) for a in alerts]), forecast_id),
        )

    def update_forecast_tracking(self, forecast: Forecast, window: int) -> float:
        """Recompute the rolling score from the stored entries and save it with the status.

        The score covers the latest ``window`` rows of spendcast.forecast_accuracy.
        Returns the stored score.
        """
        rows = self._db.execute(
            "UPDATE spendcast.forecasts SET "
            "accuracy_score = recent.score, status = %s, "
            "document = jsonb_set(document, '{model_metadata,accuracy_score}', to_jsonb(recent.score)), "
            "updated_at = NOW() "
            "FROM ("
            "SELECT GREATEST(0, LEAST(100, 100 - COALESCE(AVG(ABS(latest.error_percentage)), 100))) AS score "
            "FROM (SELECT error_percentage FROM spendcast.forecast_accuracy "
            "WHERE forecast_id = %s ORDER BY recorded_at DESC, id DESC LIMIT %s) AS latest"
            ") AS recent "
            "WHERE spendcast.forecasts.id = %s "
            "RETURNING spendcast.forecasts.accuracy_score",
            (forecast.status.value, forecast.id, window, forecast.id),
        )
        return float(rows[0]["accuracy_score"])

    # ------------------------------------------------------------------
    # Accuracy tracking (one row per forecast and month)
    # ------------------------------------------------------------------

    def append_accuracy_entry(self, forecast_id: int, entry: AccuracyTrackingEntry) -> bool:
        """Insert a tracking entry unless the month is already tracked.

        Returns False when a concurrent run recorded the month first.
        """
        rows = self._db.execute(
            "INSERT INTO spendcast.forecast_accuracy "
            "(forecast_id, prediction_month, prediction_date, predicted_amount, "
            "actual_amount, error_percentage, recorded_at) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (forecast_id, prediction_month) DO NOTHING "
            "RETURNING id",
            (
                forecast_id,
                entry.prediction_date.replace(day=1),
                entry.prediction_date,
                entry.predicted_amount,
                entry.actual_amount,
                entry.error_percentage,
                entry.recorded_at,
            ),
        )
        return bool(rows)

    def _get_accuracy_entries(self, forecast_ids: list[int]) -> dict[int, list[AccuracyTrackingEntry]]:
        rows = self._db.execute(
            "SELECT forecast_id, prediction_date, predicted_amount, actual_amount, "
            "error_percentage, recorded_at "
            "FROM spendcast.forecast_accuracy "
            "WHERE forecast_id = ANY(%s) ORDER BY recorded_at, id",
            (forecast_ids,),
        )
        entries: dict[int, list[AccuracyTrackingEntry]] = {}
        for r in rows:
            entries.setdefault(r["forecast_id"], []).append(AccuracyTrackingEntry(
                prediction_date=_as_date(r["prediction_date"]),
                predicted_amount=float(r["predicted_amount"]),
                actual_amount=float(r["actual_amount"]),
                error_percentage=float(r["error_percentage"]),
                recorded_at=r["recorded_at"],
            ))
        return entries


# ----------------------------------------------------------------------
# Document (de)serialization
# ----------------------------------------------------------------------


def _as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def _as_datetime(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _alert_to_dict(alert: Alert) -> dict:
    return {
        "id": alert.id,
        "alert_type": alert.alert_type.value,
        "severity": alert.severity.value,
        "message": alert.message,
        "triggered_at": alert.triggered_at.isoformat(),
        "acknowledged": alert.acknowledged,
    }


def forecast_to_document(forecast: Forecast) -> dict:
    """JSON-ready nested document. Status and tracking entries live in columns/rows."""
    meta = forecast.model_metadata
    agg = forecast.aggregate_forecast
    vs_budget = forecast.comparison.vs_budget
    return {
        "forecast_period": {
            "start_date": forecast.forecast_period.start_date.isoformat(),
            "end_date": forecast.forecast_period.end_date.isoformat(),
            "period_type": forecast.forecast_period.period_type.value,
        },
        "category": forecast.category,
        "predictions": [
            {
                "date": p.date.isoformat(),
                "predicted_amount": p.predicted_amount,
                "confidence_lower": p.confidence_lower,
                "confidence_upper": p.confidence_upper,
                "confidence_level": p.confidence_level,
            }
            for p in forecast.predictions
        ],
        "aggregate_forecast": {
            "total_predicted": agg.total_predicted,
            "average_monthly": agg.average_monthly,
            "trend": agg.trend.value,
            "trend_percentage": agg.trend_percentage,
        },
        "seasonal_factors": [
            {"month": s.month, "factor": s.factor, "event": s.event}
            for s in forecast.seasonal_factors
        ],
        "model_metadata": {
            "algorithm": meta.algorithm.value,
            "accuracy_score": meta.accuracy_score,
            "rmse": meta.rmse,
            "mae": meta.mae,
            "training_data_points": meta.training_data_points,
            "last_trained": meta.last_trained.isoformat(),
        },
        "comparison": {
            "vs_budget": {
                "budget_amount": vs_budget.budget_amount,
                "forecast_vs_budget": vs_budget.forecast_vs_budget,
                "will_exceed": vs_budget.will_exceed,
            },
        },
        "alerts": [_alert_to_dict(a) for a in forecast.alerts],
        "recommendations": [
            {
                "recommendation_type": r.recommendation_type.value,
                "title": r.title,
                "description": r.description,
                "impact_amount": r.impact_amount,
                "priority": r.priority.value,
            }
            for r in forecast.recommendations
        ],
    }


def _row_to_forecast(row: dict, entries: list[AccuracyTrackingEntry]) -> Forecast:
    doc = row["document"]
    if isinstance(doc, str):
        doc = json.loads(doc)

    meta = doc["model_metadata"]
    agg = doc["aggregate_forecast"]
    vs_budget = doc.get("comparison", {}).get("vs_budget", {})
    accuracy_score = row.get("accuracy_score")

    return Forecast(
        id=row["id"],
        user_id=row["user_id"],
        category=row.get("category"),
        forecast_period=ForecastPeriod(
            start_date=_as_date(row["start_date"]),
            end_date=_as_date(row["end_date"]),
            period_type=PeriodType(row["period_type"]),
        ),
        predictions=[
            Prediction(
                date=_as_date(p["date"]),
                predicted_amount=p["predicted_amount"],
                confidence_lower=p["confidence_lower"],
                confidence_upper=p["confidence_upper"],
                confidence_level=p.get("confidence_level", 95.0),
            )
            for p in doc.get("predictions", [])
        ],
        aggregate_forecast=AggregateForecast(
            total_predicted=agg["total_predicted"],
            average_monthly=agg["average_monthly"],
            trend=Trend(agg["trend"]),
            trend_percentage=agg["trend_percentage"],
        ),
        seasonal_factors=[
            SeasonalFactor(month=s["month"], factor=s["factor"], event=s.get("event"))
            for s in doc.get("seasonal_factors", [])
        ],
        model_metadata=ModelMetadata(
            algorithm=Algorithm(meta["algorithm"]),
            accuracy_score=(
                float(accuracy_score) if accuracy_score is not None else meta["accuracy_score"]
            ),
            rmse=meta["rmse"],
            mae=meta["mae"],
            training_data_points=meta["training_data_points"],
            last_trained=_as_datetime(meta["last_trained"]),
        ),
        comparison=Comparison(vs_budget=BudgetComparison(
            budget_amount=vs_budget.get("budget_amount"),
            forecast_vs_budget=vs_budget.get("forecast_vs_budget"),
            will_exceed=bool(vs_budget.get("will_exceed", False)),
        )),
        alerts=[
            Alert(
                id=a["id"],
                alert_type=AlertType(a["alert_type"]),
                severity=AlertSeverity(a["severity"]),
                message=a["message"],
                triggered_at=_as_datetime(a["triggered_at"]),
                acknowledged=bool(a.get("acknowledged", False)),
            )
            for a in doc.get("alerts", [])
        ],
        recommendations=[
            Recommendation(
                recommendation_type=RecommendationType(r["recommendation_type"]),
                title=r["title"],
                description=r["description"],
                impact_amount=r.get("impact_amount"),
                priority=Priority(r["priority"]),
            )
            for r in doc.get("recommendations", [])
        ],
        accuracy_tracking=entries,
        status=ForecastStatus(row["status"]),
        created_at=row.get("created_at"),
    )
