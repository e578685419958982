from __future__ import annotations

from spendcast.models.forecast import AggregateForecast, HistoricalPoint, Prediction, Trend

TREND_THRESHOLD_PCT = 10.0
STABLE_THRESHOLD_PCT = 5.0


def classify_trend(trend_percentage: float) -> Trend:
    """Map forecast-vs-history change to a trend label.

    Checked in order: +/-10% or beyond is a directional trend, under 5% either
    way is stable, and the band in between is volatile.
    """
    if trend_percentage >= TREND_THRESHOLD_PCT:
        return Trend.INCREASING
    if trend_percentage <= -TREND_THRESHOLD_PCT:
        return Trend.DECREASING
    if abs(trend_percentage) < STABLE_THRESHOLD_PCT:
        return Trend.STABLE
    return Trend.VOLATILE


def calculate_aggregate(
    predictions: list[Prediction], history: list[HistoricalPoint],
) -> AggregateForecast:
    """Total, monthly average and trend of the predictions against history."""
    total = sum(p.predicted_amount for p in predictions)
    average_monthly = total / len(predictions) if predictions else 0.0

    historical_avg = sum(p.amount for p in history) / len(history) if history else 0.0
    if historical_avg == 0:
        trend_percentage = 0.0
    else:
        trend_percentage = (average_monthly - historical_avg) / historical_avg * 100

    return AggregateForecast(
        total_predicted=total,
        average_monthly=average_monthly,
        trend=classify_trend(trend_percentage),
        trend_percentage=trend_percentage,
    )
