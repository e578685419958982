from __future__ import annotations

import logging

from spendcast.models.forecast import Budget, BudgetComparison, Comparison
from spendcast.sources import BudgetSource

logger = logging.getLogger(__name__)


def compare_to_budget(total_predicted: float, budget: Budget | None) -> Comparison:
    """Compare predicted spend to the active budget for the same scope."""
    if budget is None:
        return Comparison(vs_budget=BudgetComparison())

    budget_amount = float(budget.amount)
    forecast_vs_budget = total_predicted - budget_amount
    return Comparison(
        vs_budget=BudgetComparison(
            budget_amount=budget_amount,
            forecast_vs_budget=forecast_vs_budget,
            will_exceed=forecast_vs_budget > 0,
        )
    )


def load_budget_comparison(
    source: BudgetSource, user_id: str, category: str | None, total_predicted: float,
) -> Comparison:
    budget = source.fetch_active_budget(user_id, category)
    if budget is None:
        logger.debug("No active budget for user=%s category=%s", user_id, category)
    return compare_to_budget(total_predicted, budget)
