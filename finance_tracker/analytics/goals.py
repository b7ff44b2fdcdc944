"""
Goal Balance Aggregator

A goal's balance mixes two sources:
- transactions filed under a goal category (Meta, Reserva, Investimento)
  that point at the goal, either through `goal_id` or, for records that
  predate explicit links, through a description equal to the goal name
  (trimmed, case-insensitive)
- manual goal steps, contributions adding and withdrawals subtracting

Renaming a goal orphans the name-matched transactions. Linking them by
`goal_id` avoids that.
"""

from typing import Iterable, Optional

from finance_tracker.analytics.common import ZERO, as_decimal, names_match, normalize_key
from finance_tracker.config import AnalysisSettings, get_settings
from finance_tracker.models.records import Goal, GoalStep, GoalStepType, Transaction
from finance_tracker.models.reports import GoalBalance


def is_goal_contribution(
    transaction: Transaction,
    goal: Goal,
    settings: Optional[AnalysisSettings] = None,
) -> bool:
    settings = settings or get_settings().analysis
    categories = {normalize_key(category) for category in settings.goal_categories}
    if normalize_key(transaction.category) not in categories:
        return False
    if transaction.goal_id:
        return transaction.goal_id == goal.id
    return names_match(transaction.description, goal.name)


def compute_goal_balance(
    goal: Goal,
    steps: Iterable[GoalStep] = (),
    transactions: Iterable[Transaction] = (),
    settings: Optional[AnalysisSettings] = None,
) -> GoalBalance:
    """Contributions minus withdrawals. Non-positive steps are ignored."""
    settings = settings or get_settings().analysis

    external = sum(
        (as_decimal(t.amount) for t in transactions if is_goal_contribution(t, goal, settings)),
        ZERO,
    )

    contributed = ZERO
    withdrawn = ZERO
    for step in steps:
        amount = as_decimal(step.amount)
        if amount <= 0:
            continue
        if step.step_type == GoalStepType.WITHDRAWAL:
            withdrawn += amount
        else:
            contributed += amount

    return GoalBalance(
        goal_id=goal.id,
        goal_name=goal.name,
        external_contributions=external,
        step_contributions=contributed,
        withdrawals=withdrawn,
        balance=external + contributed - withdrawn,
    )


def refresh_goal(goal: Goal, balance: GoalBalance) -> Goal:
    """Copy of `goal` with its cached balance updated."""
    return goal.model_copy(update={"balance": balance.balance})
