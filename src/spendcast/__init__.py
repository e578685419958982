"""Predictive budgeting engine: spending forecasts, budget checks and accuracy tracking."""

__version__ = "0.1.0"
