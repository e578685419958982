"""Forecast models fitted to a monthly spending series.

Three interchangeable closed-form models:
  - Moving average over the last three months
  - Ordinary least squares on the month index
  - Simple exponential smoothing (flat forecast, no trend term)

Every model emits one Prediction per forecast date with a 1.96-sigma band,
whatever confidence level the caller asked for (the level is carried through
as metadata), plus RMSE/MAE of its residuals and an accuracy score.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from spendcast.models.forecast import Algorithm, HistoricalPoint, Prediction

Z_95 = 1.96
MOVING_AVERAGE_WINDOW = 3
DEFAULT_ALPHA = 0.3


@dataclass
class ModelFit:
    rmse: float
    mae: float
    accuracy_score: float


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _population_std(values: list[float], center: float) -> float:
    if not values:
        return 0.0
    return math.sqrt(sum((v - center) ** 2 for v in values) / len(values))


def accuracy_from_mae(mae: float, mean: float) -> float:
    """100 minus MAE as a percentage of the mean, floored at 0.

    A non-positive mean has no meaningful ratio: a perfect fit scores 100,
    anything else 0.
    """
    if mean <= 0:
        return 100.0 if mae == 0 else 0.0
    return min(100.0, max(0.0, 100.0 - mae / mean * 100.0))


def residual_fit(residuals: list[float], mean: float) -> ModelFit:
    rmse = math.sqrt(_mean([r * r for r in residuals]))
    mae = _mean([abs(r) for r in residuals])
    return ModelFit(rmse=rmse, mae=mae, accuracy_score=accuracy_from_mae(mae, mean))


def moving_average_forecast(
    points: list[HistoricalPoint],
    dates: list[date],
    confidence_level: float = 95.0,
) -> tuple[list[Prediction], ModelFit]:
    window_size = min(MOVING_AVERAGE_WINDOW, len(points))
    recent = [p.amount for p in points[-window_size:]]
    average = _mean(recent)
    std_dev = _population_std(recent, average)

    predictions = [
        Prediction(
            date=d,
            predicted_amount=average,
            confidence_lower=average - Z_95 * std_dev,
            confidence_upper=average + Z_95 * std_dev,
            confidence_level=confidence_level,
        )
        for d in dates
    ]
    residuals = [v - average for v in recent]
    return predictions, residual_fit(residuals, average)


def linear_regression_forecast(
    points: list[HistoricalPoint],
    dates: list[date],
    confidence_level: float = 95.0,
) -> tuple[list[Prediction], ModelFit]:
    n = len(points)
    y = [p.amount for p in points]
    x = list(range(n))

    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(xi * yi for xi, yi in zip(x, y))
    sum_x2 = sum(xi * xi for xi in x)

    denominator = n * sum_x2 - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator if denominator else 0.0
    intercept = (sum_y - slope * sum_x) / n if n else 0.0

    residuals = [yi - (slope * xi + intercept) for xi, yi in zip(x, y)]
    # n - 2 degrees of freedom for a two-parameter fit
    residual_std = math.sqrt(sum(r * r for r in residuals) / (n - 2)) if n > 2 else 0.0

    predictions: list[Prediction] = []
    for i, d in enumerate(dates):
        predicted = max(0.0, slope * (n + i) + intercept)
        predictions.append(Prediction(
            date=d,
            predicted_amount=predicted,
            confidence_lower=max(0.0, predicted - Z_95 * residual_std),
            confidence_upper=predicted + Z_95 * residual_std,
            confidence_level=confidence_level,
        ))

    return predictions, residual_fit(residuals, _mean(y))


def exponential_smoothing_forecast(
    points: list[HistoricalPoint],
    dates: list[date],
    confidence_level: float = 95.0,
    alpha: float = DEFAULT_ALPHA,
) -> tuple[list[Prediction], ModelFit]:
    y = [p.amount for p in points]
    smoothed = [y[0]]
    for value in y[1:]:
        smoothed.append(alpha * value + (1 - alpha) * smoothed[-1])

    residuals = [yi - si for yi, si in zip(y, smoothed)]
    std_dev = math.sqrt(_mean([r * r for r in residuals]))
    level = smoothed[-1]

    predictions = [
        Prediction(
            date=d,
            predicted_amount=level,
            confidence_lower=max(0.0, level - Z_95 * std_dev),
            confidence_upper=level + Z_95 * std_dev,
            confidence_level=confidence_level,
        )
        for d in dates
    ]
    return predictions, residual_fit(residuals, _mean(y))


ForecastFn = Callable[[list[HistoricalPoint], list[date], float], tuple[list[Prediction], ModelFit]]

ALGORITHMS: dict[Algorithm, ForecastFn] = {
    Algorithm.MOVING_AVERAGE: moving_average_forecast,
    Algorithm.LINEAR_REGRESSION: linear_regression_forecast,
    Algorithm.EXPONENTIAL_SMOOTHING: exponential_smoothing_forecast,
}


def fit_forecast(
    algorithm: Algorithm,
    points: list[HistoricalPoint],
    dates: list[date],
    confidence_level: float = 95.0,
    alpha: float = DEFAULT_ALPHA,
) -> tuple[list[Prediction], ModelFit]:
    """Run the selected model. Raises ValueError for an unknown algorithm."""
    if not points:
        raise ValueError("Cannot fit a forecast without historical points")
    algorithm = Algorithm(algorithm)
    if algorithm == Algorithm.EXPONENTIAL_SMOOTHING:
        return exponential_smoothing_forecast(points, dates, confidence_level, alpha=alpha)
    return ALGORITHMS[algorithm](points, dates, confidence_level)
