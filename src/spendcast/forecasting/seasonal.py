"""Per-calendar-month spending factors over the full history.

Purely descriptive: factors label high and low months for display and do not
feed back into the forecast models.
"""

from __future__ import annotations

import pandas as pd

from spendcast.models.forecast import HistoricalPoint, SeasonalFactor

HIGH_SPENDING_FACTOR = 1.2
LOW_SPENDING_FACTOR = 0.8


def seasonal_event(factor: float) -> str | None:
    if factor > HIGH_SPENDING_FACTOR:
        return "High spending period"
    if factor < LOW_SPENDING_FACTOR:
        return "Low spending period"
    return None


def detect_seasonal_factors(points: list[HistoricalPoint]) -> list[SeasonalFactor]:
    """One factor per calendar month observed, ordered January to December.

    factor = mean(amounts in that month across years) / mean(all amounts).
    With a zero overall mean every observed month is neutral (1.0).
    """
    if not points:
        return []

    series = pd.Series(
        [p.amount for p in points],
        index=pd.to_datetime([p.date for p in points]),
        dtype=float,
    )
    overall_average = float(series.mean())
    month_averages = series.groupby(series.index.month).mean().sort_index()

    factors: list[SeasonalFactor] = []
    for month, month_average in month_averages.items():
        if overall_average == 0:
            factors.append(SeasonalFactor(month=int(month), factor=1.0))
            continue
        factor = float(month_average) / overall_average
        factors.append(SeasonalFactor(month=int(month), factor=factor, event=seasonal_event(factor)))
    return factors
