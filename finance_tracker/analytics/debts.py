"""Debt ledger totals."""

from typing import Iterable

from finance_tracker.analytics.common import ZERO
from finance_tracker.models.records import Debt, DebtStatus
from finance_tracker.models.reports import DebtSummary


def summarize_debts(debts: Iterable[Debt]) -> DebtSummary:
    debts = list(debts)
    open_debts = [debt for debt in debts if debt.status != DebtStatus.SETTLED]

    by_status: dict[str, int] = {}
    for debt in debts:
        by_status[debt.status.value] = by_status.get(debt.status.value, 0) + 1

    return DebtSummary(
        count=len(debts),
        total_debt=sum((debt.total_amount for debt in debts), ZERO),
        outstanding=sum((debt.outstanding_amount for debt in open_debts), ZERO),
        monthly_commitment=sum((debt.installment_amount for debt in open_debts), ZERO),
        by_status=by_status,
    )
