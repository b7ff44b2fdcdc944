"""
Service Profitability Report

Builds a per-service-line breakdown for business records.

ALGORITHM:
1. Expenses split into fixed and variable by their type flag.
2. Service lines are the distinct trimmed, non-empty income descriptions,
   in the order they first appear. Two spellings that differ only in case
   are the same line; the first spelling is the one displayed.
3. The fixed pool is split EVENLY across lines, regardless of revenue.
4. Each line: revenue, direct cost (variable expenses with the same
   description), total cost = direct cost + fixed share, profit, margin.

KNOWN GAP: a variable expense whose description names no service line
ends up in no line at all. The amount is kept visible as
`unattributed_variable_cost` on the report instead of being redistributed.

Margin tiers only select advisory text; they never change a number.
"""

from decimal import Decimal
from typing import Iterable, Optional

from finance_tracker.analytics.balance import compute_balance
from finance_tracker.analytics.common import (
    ZERO,
    as_decimal,
    normalize_key,
    percent_of,
)
from finance_tracker.config import AnalysisSettings, get_settings
from finance_tracker.models.records import Transaction
from finance_tracker.models.reports import (
    MarginAdvice,
    MarginTier,
    ProfitabilityReport,
    ServiceProfitability,
)


_ADVICE = {
    MarginTier.ALERT: (
        "Alert",
        "Your profit margin is below what a business needs. "
        "Revenue is coming in, but little of it stays as profit.",
        "Costs may be too high or prices too low.",
        "Review pricing, variable costs and the time spent on each service.",
    ),
    MarginTier.HEALTHY: (
        "Healthy",
        "The business runs at a healthy margin, with room to grow.",
        "The model works; targeted adjustments can add financial safety.",
        "Streamline processes, cut costs and revisit pricing to lift the margin.",
    ),
    MarginTier.EXCELLENT: (
        "Excellent",
        "Your profit margin is high: the business is efficient and well structured.",
        "This margin leaves room for stability, reinvestment and growth.",
        "Keep watching costs and look at ways to expand or standardize.",
    ),
}


def classify_margin(
    margin: float,
    settings: Optional[AnalysisSettings] = None,
) -> MarginTier:
    """Below 30 alert, 30 to 50 inclusive healthy, above 50 excellent."""
    settings = settings or get_settings().analysis
    if margin < settings.healthy_margin:
        return MarginTier.ALERT
    if margin <= settings.excellent_margin:
        return MarginTier.HEALTHY
    return MarginTier.EXCELLENT


def margin_advice(
    margin: float,
    settings: Optional[AnalysisSettings] = None,
) -> MarginAdvice:
    tier = classify_margin(margin, settings)
    status, message, detail, recommendation = _ADVICE[tier]
    return MarginAdvice(
        tier=tier,
        status=status,
        message=message,
        detail=detail,
        recommendation=recommendation,
    )


def build_profitability_report(
    incomes: Iterable[Transaction],
    expenses: Iterable[Transaction],
    settings: Optional[AnalysisSettings] = None,
) -> ProfitabilityReport:
    """Profitability of every service line found in the income descriptions."""
    settings = settings or get_settings().analysis
    incomes = list(incomes)
    expenses = list(expenses)

    fixed = [expense for expense in expenses if expense.is_fixed]
    variable = [expense for expense in expenses if expense.is_variable]
    total_fixed = sum((as_decimal(e.amount) for e in fixed), ZERO)

    # key -> display name, in first-seen order
    lines: dict[str, str] = {}
    revenue: dict[str, Decimal] = {}
    for income in incomes:
        name = (income.description or "").strip()
        if not name:
            continue
        key = normalize_key(name)
        lines.setdefault(key, name)
        revenue[key] = revenue.get(key, ZERO) + as_decimal(income.amount)

    direct_cost: dict[str, Decimal] = {key: ZERO for key in lines}
    unattributed = ZERO
    for expense in variable:
        key = normalize_key(expense.description)
        if key in direct_cost:
            direct_cost[key] += as_decimal(expense.amount)
        else:
            unattributed += as_decimal(expense.amount)

    fixed_share = total_fixed / max(1, len(lines))

    services = []
    for key, name in lines.items():
        line_revenue = revenue[key]
        total_cost = direct_cost[key] + fixed_share
        profit = line_revenue - total_cost
        margin = percent_of(profit, line_revenue)
        services.append(ServiceProfitability(
            service=name,
            revenue=line_revenue,
            direct_cost=direct_cost[key],
            fixed_share=fixed_share,
            total_cost=total_cost,
            profit=profit,
            margin=margin,
            tier=classify_margin(margin, settings),
        ))

    balance = compute_balance(incomes, expenses)

    return ProfitabilityReport(
        services=services,
        total_fixed=total_fixed,
        fixed_share=fixed_share,
        unattributed_variable_cost=unattributed,
        balance=balance,
        overall_tier=classify_margin(balance.margin, settings),
    )
