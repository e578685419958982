from __future__ import annotations

from spendcast.forecasting.advisories import AdvisoryEngine
from spendcast.forecasting.aggregate import calculate_aggregate, classify_trend
from spendcast.forecasting.algorithms import ALGORITHMS, ModelFit, fit_forecast
from spendcast.forecasting.budget import compare_to_budget, load_budget_comparison
from spendcast.forecasting.history import load_history, monthly_history
from spendcast.forecasting.periods import ForecastWindow, calculate_periods, forecast_dates
from spendcast.forecasting.seasonal import detect_seasonal_factors

__all__ = [
    "AdvisoryEngine",
    "ALGORITHMS",
    "ForecastWindow",
    "ModelFit",
    "calculate_aggregate",
    "calculate_periods",
    "classify_trend",
    "compare_to_budget",
    "detect_seasonal_factors",
    "fit_forecast",
    "forecast_dates",
    "load_budget_comparison",
    "load_history",
    "monthly_history",
]
