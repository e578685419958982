"""Collapse raw transactions into one amount per calendar month.

History is always bucketed by calendar month, whatever the requested period
type. Weekly, quarterly and yearly forecasts are still fitted on the monthly
series and emit monthly predictions.
"""

from __future__ import annotations

import logging

import pandas as pd

from spendcast.forecasting.periods import ForecastWindow
from spendcast.models.forecast import HistoricalPoint, Transaction
from spendcast.sources import TransactionSource

logger = logging.getLogger(__name__)


def monthly_history(transactions: list[Transaction]) -> list[HistoricalPoint]:
    """Sum transactions per calendar month, ascending by month."""
    if not transactions:
        return []

    df = pd.DataFrame(
        {
            "date": pd.to_datetime([t.date for t in transactions]),
            "amount": [float(t.amount) for t in transactions],
        }
    )
    monthly = df.groupby(df["date"].dt.to_period("M"))["amount"].sum().sort_index()

    return [
        HistoricalPoint(date=period.start_time.date(), amount=float(amount))
        for period, amount in monthly.items()
    ]


def load_history(
    source: TransactionSource,
    user_id: str,
    category: str | None,
    window: ForecastWindow,
) -> list[HistoricalPoint]:
    """Fetch the historical window from the transaction source and aggregate it."""
    transactions = source.fetch_transactions(
        user_id, category, window.historical_start, window.historical_end,
    )
    points = monthly_history(transactions)
    logger.debug(
        "History for user=%s category=%s: %d transactions -> %d months",
        user_id, category, len(transactions), len(points),
    )
    return points
