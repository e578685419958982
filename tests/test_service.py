from __future__ import annotations

from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from spendcast.config import AppConfig
from spendcast.errors import InsufficientHistoryError, InvalidForecastRequestError, NotFoundError
from spendcast.models.forecast import (
    AlertType,
    Algorithm,
    Budget,
    ForecastStatus,
    PeriodType,
    RecommendationType,
    Trend,
)
from spendcast.models.request import ForecastRequest
from spendcast.registry.queries import Registry
from spendcast.service import ForecastService


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 5, 15, 9, 0))


@pytest.fixture
def service(store, ledger, clock) -> ForecastService:
    return ForecastService(store, ledger, ledger, ledger, clock=clock)


def _three_months(ledger, user_id: str = "u1", category: str | None = None) -> None:
    ledger.add(user_id, date(2026, 2, 3), 60.0, category)
    ledger.add(user_id, date(2026, 2, 21), 40.0, category)
    ledger.add(user_id, date(2026, 3, 9), 200.0, category)
    ledger.add(user_id, date(2026, 4, 12), 300.0, category)


class TestGenerateForecast:
    def test_monthly_moving_average(self, service, store, ledger) -> None:
        _three_months(ledger)

        forecast = service.generate_forecast("u1")

        assert forecast.id is not None
        assert forecast.id in store.forecasts
        assert forecast.status == ForecastStatus.ACTIVE
        assert forecast.forecast_period.start_date == date(2026, 5, 15)
        assert forecast.forecast_period.end_date == date(2026, 6, 15)
        assert len(forecast.predictions) == 1
        assert forecast.predictions[0].predicted_amount == pytest.approx(200.0)
        assert forecast.aggregate_forecast.total_predicted == pytest.approx(200.0)
        assert forecast.aggregate_forecast.trend == Trend.STABLE
        assert forecast.model_metadata.algorithm == Algorithm.MOVING_AVERAGE
        assert forecast.model_metadata.training_data_points == 3
        assert forecast.model_metadata.last_trained == datetime(2026, 5, 15, 9, 0)
        assert [s.month for s in forecast.seasonal_factors] == [2, 3, 4]
        assert forecast.comparison.vs_budget.budget_amount is None
        assert forecast.alerts == []

    def test_two_months_is_refused_and_nothing_saved(self, service, store, ledger) -> None:
        ledger.add("u1", date(2026, 3, 9), 200.0)
        ledger.add("u1", date(2026, 4, 12), 300.0)

        with pytest.raises(InsufficientHistoryError) as exc_info:
            service.generate_forecast("u1")

        assert exc_info.value.months_found == 2
        assert exc_info.value.months_required == 3
        assert store.forecasts == {}

    def test_history_outside_window_ignored(self, service, store, ledger) -> None:
        _three_months(ledger)
        ledger.add("u1", date(2024, 12, 1), 900.0)

        forecast = service.generate_forecast("u1")
        assert forecast.model_metadata.training_data_points == 3

    def test_over_budget_raises_alert_and_recommendation(self, service, ledger) -> None:
        _three_months(ledger)
        ledger.budgets[("u1", None)] = Budget(amount=150.0)

        forecast = service.generate_forecast("u1")

        vs = forecast.comparison.vs_budget
        assert vs.budget_amount == 150.0
        assert vs.forecast_vs_budget == pytest.approx(50.0)
        assert vs.will_exceed is True
        assert [r.recommendation_type for r in forecast.recommendations] == [RecommendationType.INCREASE_BUDGET]
        assert [a.alert_type for a in forecast.alerts] == [AlertType.FORECAST_EXCEEDS_BUDGET]

    def test_linear_regression_rising_trend(self, service, ledger) -> None:
        _three_months(ledger)

        forecast = service.generate_forecast("u1", {"algorithm": "linear_regression"})

        assert forecast.predictions[0].predicted_amount == pytest.approx(400.0)
        assert forecast.aggregate_forecast.trend == Trend.INCREASING
        assert forecast.aggregate_forecast.trend_percentage == pytest.approx(100.0)
        assert {a.alert_type for a in forecast.alerts} == {AlertType.UNUSUAL_SPIKE}
        assert {r.recommendation_type for r in forecast.recommendations} == {RecommendationType.REVIEW_CATEGORY}

    def test_quarterly_emits_three_predictions(self, service, ledger) -> None:
        _three_months(ledger)
        forecast = service.generate_forecast("u1", ForecastRequest(period_type=PeriodType.QUARTERLY))
        assert [p.date for p in forecast.predictions] == [
            date(2026, 5, 15), date(2026, 6, 15), date(2026, 7, 15),
        ]
        assert forecast.aggregate_forecast.total_predicted == pytest.approx(600.0)

    def test_category_scopes_history_and_budget(self, service, ledger) -> None:
        _three_months(ledger, category="Dining")
        ledger.add("u1", date(2026, 3, 1), 5000.0, "Rent")
        ledger.budgets[("u1", "Dining")] = Budget(amount=250.0, category="Dining")

        forecast = service.generate_forecast("u1", {"category": "Dining"})

        assert forecast.category == "Dining"
        assert forecast.predictions[0].predicted_amount == pytest.approx(200.0)
        assert forecast.comparison.vs_budget.will_exceed is False

    def test_unknown_algorithm_rejected(self, service, store, ledger) -> None:
        _three_months(ledger)
        with pytest.raises(InvalidForecastRequestError):
            service.generate_forecast("u1", {"algorithm": "arima"})
        assert store.forecasts == {}

    def test_confidence_out_of_range_rejected(self, service, ledger) -> None:
        _three_months(ledger)
        with pytest.raises(InvalidForecastRequestError):
            service.generate_forecast("u1", {"confidence_level": 50})

    def test_configured_default_confidence(self, store, ledger, clock) -> None:
        _three_months(ledger)
        service = ForecastService(store, ledger, ledger, ledger, clock=clock, default_confidence_level=90.0)

        forecast = service.generate_forecast("u1", {})

        assert forecast.predictions[0].confidence_level == 90.0

    def test_min_history_configurable(self, store, ledger, clock) -> None:
        _three_months(ledger)
        service = ForecastService(store, ledger, ledger, ledger, clock=clock, min_history_months=6)
        with pytest.raises(InsufficientHistoryError):
            service.generate_forecast("u1")


class TestLookup:
    def test_get_forecast_by_id(self, service, ledger) -> None:
        _three_months(ledger)
        created = service.generate_forecast("u1")

        fetched = service.get_forecast_by_id(created.id, "u1")

        assert fetched.id == created.id
        assert fetched.aggregate_forecast.total_predicted == pytest.approx(200.0)

    def test_other_users_forecast_not_found(self, service, ledger) -> None:
        _three_months(ledger)
        created = service.generate_forecast("u1")

        with pytest.raises(NotFoundError):
            service.get_forecast_by_id(created.id, "intruder")

    def test_missing_forecast_not_found(self, service) -> None:
        with pytest.raises(NotFoundError):
            service.get_forecast_by_id(404, "u1")

    def test_expired_on_read(self, service, store, ledger, clock) -> None:
        _three_months(ledger)
        created = service.generate_forecast("u1")

        clock.now = datetime(2026, 6, 16, 9, 0)
        fetched = service.get_forecast_by_id(created.id, "u1")

        assert fetched.status == ForecastStatus.EXPIRED
        assert store.status_updates == [(created.id, ForecastStatus.EXPIRED)]
        assert service.get_user_forecasts("u1") == []
        assert len(service.get_user_forecasts("u1", status=None)) == 1

    def test_still_active_on_end_date(self, service, ledger, clock) -> None:
        _three_months(ledger)
        created = service.generate_forecast("u1")

        clock.now = datetime(2026, 6, 15, 23, 0)
        assert service.get_forecast_by_id(created.id, "u1").status == ForecastStatus.ACTIVE

    def test_user_forecasts_filters(self, service, ledger) -> None:
        _three_months(ledger)
        _three_months(ledger, category="Dining")
        service.generate_forecast("u1")
        service.generate_forecast("u1", {"category": "Dining", "period_type": "quarterly"})

        assert len(service.get_user_forecasts("u1")) == 2
        assert [f.category for f in service.get_user_forecasts("u1", category="Dining")] == ["Dining"]
        quarterly = service.get_user_forecasts("u1", period_type="quarterly")
        assert [f.forecast_period.period_type for f in quarterly] == [PeriodType.QUARTERLY]


class TestAcknowledgeAlert:
    def test_marks_alert_acknowledged(self, service, store, ledger) -> None:
        _three_months(ledger)
        ledger.budgets[("u1", None)] = Budget(amount=100.0)
        created = service.generate_forecast("u1")
        alert_id = created.alerts[0].id

        service.acknowledge_alert(created.id, "u1", alert_id)

        stored = store.forecasts[created.id]
        assert stored.alerts[0].acknowledged is True
        assert stored.unacknowledged_alerts == []

    def test_unknown_alert(self, service, ledger) -> None:
        _three_months(ledger)
        created = service.generate_forecast("u1")
        with pytest.raises(NotFoundError):
            service.acknowledge_alert(created.id, "u1", "nope")

    def test_other_users_forecast(self, service, ledger) -> None:
        _three_months(ledger)
        ledger.budgets[("u1", None)] = Budget(amount=100.0)
        created = service.generate_forecast("u1")
        with pytest.raises(NotFoundError):
            service.acknowledge_alert(created.id, "u2", created.alerts[0].id)


class TestUnacknowledgedAlerts:
    def test_lists_forecast_until_acknowledged(self, service, ledger) -> None:
        _three_months(ledger)
        ledger.budgets[("u1", None)] = Budget(amount=100.0)
        created = service.generate_forecast("u1")

        assert [f.id for f in service.get_unacknowledged_alerts("u1")] == [created.id]

        service.acknowledge_alert(created.id, "u1", created.alerts[0].id)
        assert service.get_unacknowledged_alerts("u1") == []

    def test_medium_alerts_not_listed(self, service, ledger) -> None:
        _three_months(ledger)
        service.generate_forecast("u1", {"algorithm": "linear_regression"})
        assert service.get_unacknowledged_alerts("u1") == []

    def test_expired_forecast_dropped(self, service, store, ledger, clock) -> None:
        _three_months(ledger)
        ledger.budgets[("u1", None)] = Budget(amount=100.0)
        created = service.generate_forecast("u1")

        clock.now = datetime(2026, 6, 16, 9, 0)

        assert service.get_unacknowledged_alerts("u1") == []
        assert store.status_updates == [(created.id, ForecastStatus.EXPIRED)]

class TestTrackingAndSummary:
    def test_update_forecast_accuracy(self, service, store, ledger, clock) -> None:
        _three_months(ledger)
        created = service.generate_forecast("u1")

        ledger.add("u1", date(2026, 5, 20), 250.0)
        clock.now = datetime(2026, 6, 1, 6, 0)
        result = service.update_forecast_accuracy("u1")

        assert result.entries_recorded == 1
        stored = store.forecasts[created.id]
        assert stored.accuracy_tracking[0].error_percentage == pytest.approx(25.0)
        assert stored.model_metadata.accuracy_score == pytest.approx(75.0)

    def test_summary(self, service, ledger) -> None:
        _three_months(ledger)
        _three_months(ledger, category="Dining")
        ledger.budgets[("u1", None)] = Budget(amount=100.0)
        service.generate_forecast("u1")
        service.generate_forecast("u1", {"category": "Dining"})

        summary = service.get_forecast_summary("u1")

        assert summary.total_forecasts == 2
        assert summary.total_predicted_spending == pytest.approx(600.0)
        assert summary.alerts.high == 1
        assert summary.accuracy_overall is None


class TestFromRegistry:
    def test_wires_registry_and_config(self) -> None:
        registry = MagicMock(spec=Registry)
        config = AppConfig(db_dsn="", min_history_months=4, accuracy_window=6, smoothing_alpha=0.5)

        service = ForecastService.from_registry(registry, config)

        assert service._store is registry
        assert service._transactions is registry
        assert service._min_history_months == 4
        assert service._accuracy_window == 6
        assert service._smoothing_alpha == 0.5
