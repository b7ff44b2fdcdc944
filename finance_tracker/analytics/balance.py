"""
Balance Calculator

A pure reduction over two collections. Every amount is taken nominally
in the display currency: a BRL income and a USD expense are summed as
if they shared a unit. No conversion happens anywhere in the engine.
"""

from typing import Iterable

from finance_tracker.analytics.common import HasAmount, percent_of, sum_amounts
from finance_tracker.models.reports import BalanceSummary


def compute_balance(
    incomes: Iterable[HasAmount],
    expenses: Iterable[HasAmount],
) -> BalanceSummary:
    """
    Total incomes, total expenses and their difference.

    Empty collections give zeros everywhere; the margin is 0 whenever
    there is no income.
    """
    total_income = sum_amounts(incomes)
    total_expense = sum_amounts(expenses)
    balance = total_income - total_expense

    return BalanceSummary(
        total_income=total_income,
        total_expense=total_expense,
        balance=balance,
        margin=percent_of(balance, total_income),
    )
