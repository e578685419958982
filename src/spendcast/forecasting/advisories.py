from __future__ import annotations

import logging
from datetime import datetime

from spendcast.models.forecast import (
    AggregateForecast,
    Alert,
    AlertSeverity,
    AlertType,
    Comparison,
    Priority,
    Recommendation,
    RecommendationType,
    Trend,
)

logger = logging.getLogger(__name__)


class AdvisoryEngine:
    """Derives recommendations and alerts from a forecast's aggregate and budget comparison."""

    def __init__(
        self,
        review_trend_pct: float = 15.0,
        spike_trend_pct: float = 20.0,
    ) -> None:
        self.review_trend_pct = review_trend_pct
        self.spike_trend_pct = spike_trend_pct

    def recommendations(
        self, aggregate: AggregateForecast, comparison: Comparison,
    ) -> list[Recommendation]:
        vs_budget = comparison.vs_budget
        recs: list[Recommendation] = []

        if vs_budget.will_exceed and vs_budget.forecast_vs_budget is not None:
            exceeded_by = vs_budget.forecast_vs_budget
            recs.append(Recommendation(
                recommendation_type=RecommendationType.INCREASE_BUDGET,
                title="Budget Increase Recommended",
                description=(
                    f"Forecast indicates spending will exceed budget by ${exceeded_by:.2f}. "
                    "Consider increasing budget or reducing spending."
                ),
                impact_amount=exceeded_by,
                priority=Priority.HIGH,
            ))

        if aggregate.trend == Trend.INCREASING and aggregate.trend_percentage > self.review_trend_pct:
            recs.append(Recommendation(
                recommendation_type=RecommendationType.REVIEW_CATEGORY,
                title="Rising Spending Trend Detected",
                description=(
                    f"Spending is projected to increase by {aggregate.trend_percentage:.1f}%. "
                    "Review expenses to identify cost-saving opportunities."
                ),
                impact_amount=None,
                priority=Priority.MEDIUM,
            ))

        if aggregate.trend == Trend.DECREASING and not vs_budget.will_exceed:
            if vs_budget.forecast_vs_budget is None:
                savings = None
                description = (
                    "Spending is decreasing. Consider setting aside the difference "
                    "for savings or investments."
                )
            else:
                savings = abs(vs_budget.forecast_vs_budget)
                description = (
                    f"Spending is decreasing. Consider allocating ${savings:.2f} "
                    "to savings or investments."
                )
            recs.append(Recommendation(
                recommendation_type=RecommendationType.SAVE_MORE,
                title="Savings Opportunity",
                description=description,
                impact_amount=savings,
                priority=Priority.LOW,
            ))

        return recs

    def alerts(
        self,
        aggregate: AggregateForecast,
        comparison: Comparison,
        now: datetime | None = None,
    ) -> list[Alert]:
        triggered_at = now or datetime.now()
        vs_budget = comparison.vs_budget
        alerts: list[Alert] = []

        if vs_budget.will_exceed and vs_budget.forecast_vs_budget is not None:
            alerts.append(Alert(
                alert_type=AlertType.FORECAST_EXCEEDS_BUDGET,
                severity=AlertSeverity.HIGH,
                message=(
                    "Your forecast indicates you will exceed your budget by "
                    f"${vs_budget.forecast_vs_budget:.2f}"
                ),
                triggered_at=triggered_at,
            ))

        # Independent of the review threshold; both can fire
        if aggregate.trend == Trend.INCREASING and aggregate.trend_percentage > self.spike_trend_pct:
            alerts.append(Alert(
                alert_type=AlertType.UNUSUAL_SPIKE,
                severity=AlertSeverity.MEDIUM,
                message=(
                    "Spending is projected to increase significantly by "
                    f"{aggregate.trend_percentage:.1f}%"
                ),
                triggered_at=triggered_at,
            ))

        if alerts:
            logger.debug("Raised %d forecast alert(s)", len(alerts))
        return alerts
