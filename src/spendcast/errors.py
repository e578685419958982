"""Error taxonomy for forecast generation, lookup and tracking."""

from __future__ import annotations


class ForecastError(Exception):
    """Base class for all spendcast errors."""


class InsufficientHistoryError(ForecastError):
    """Too few months of spending history to fit a model."""

    def __init__(self, months_found: int, months_required: int) -> None:
        self.months_found = months_found
        self.months_required = months_required
        super().__init__(
            f"Insufficient historical data for forecasting: found {months_found} "
            f"month(s), minimum {months_required} required"
        )


class NotFoundError(ForecastError):
    """Forecast (or alert) is unknown or belongs to another user."""


class UpstreamDataError(ForecastError):
    """A transaction, budget or actual-spend lookup failed."""


class InvalidForecastRequestError(ForecastError, ValueError):
    """Forecast options failed validation (unknown algorithm, bad period, ...)."""
