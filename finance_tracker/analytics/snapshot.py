"""
Report Snapshot Builder

Produces the payload archived into a SavedReport. The section names are
the ones earlier versions of the app archived under, so old history
entries and new ones read the same way (trend lookups read
`Resumo_Saidas`).
"""

from typing import Iterable

from finance_tracker.analytics.distribution import (
    ARCHIVED_EXPENSES_KEY,
    build_category_distribution,
    build_classification_profile,
)
from finance_tracker.models.records import MonthlyBudgetLine, Transaction


INCOMES_SECTION = "Resumo_Entradas"
EXPENSES_SECTION = ARCHIVED_EXPENSES_KEY
BUDGET_SECTION = "Planejamento_Mensal"
CATEGORY_SECTION = "Gastos_Por_Categoria"
PROFILE_SECTION = "Perfil_De_Gastos"


def build_report_snapshot(
    incomes: Iterable[Transaction],
    expenses: Iterable[Transaction],
    budget_lines: Iterable[MonthlyBudgetLine] = (),
) -> dict:
    """JSON-ready archive of one period."""
    incomes = list(incomes)
    expenses = list(expenses)
    budget_lines = list(budget_lines)

    distribution = build_category_distribution(expenses, budget_lines, history=())
    profile = build_classification_profile(expenses)

    return {
        INCOMES_SECTION: [income.to_storage() for income in incomes],
        EXPENSES_SECTION: [expense.to_storage() for expense in expenses],
        BUDGET_SECTION: [line.to_storage() for line in budget_lines],
        CATEGORY_SECTION: [
            {"name": share.category, "value": float(share.total)}
            for share in distribution.categories
            if share.total > 0
        ],
        PROFILE_SECTION: [
            {"name": item.classification.value, "value": float(item.total)}
            for item in profile
        ],
    }
