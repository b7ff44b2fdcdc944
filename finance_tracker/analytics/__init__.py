"""
Aggregation Engine

Pure, synchronous functions from records to reports. Nothing here does
I/O, and nothing here raises on degenerate input: every division is
guarded to yield 0.
"""

from finance_tracker.analytics.balance import compute_balance
from finance_tracker.analytics.common import names_match, normalize_key
from finance_tracker.analytics.debts import summarize_debts
from finance_tracker.analytics.distribution import (
    UNCATEGORIZED,
    build_category_distribution,
    build_classification_profile,
    classify_adherence,
    compute_trend,
    resolve_ideal_percent,
)
from finance_tracker.analytics.goals import (
    compute_goal_balance,
    is_goal_contribution,
    refresh_goal,
)
from finance_tracker.analytics.profitability import (
    build_profitability_report,
    classify_margin,
    margin_advice,
)
from finance_tracker.analytics.remittances import summarize_by_year
from finance_tracker.analytics.snapshot import build_report_snapshot

__all__ = [
    "UNCATEGORIZED",
    "build_category_distribution",
    "build_classification_profile",
    "build_profitability_report",
    "build_report_snapshot",
    "classify_adherence",
    "classify_margin",
    "compute_balance",
    "compute_goal_balance",
    "is_goal_contribution",
    "compute_trend",
    "margin_advice",
    "names_match",
    "normalize_key",
    "refresh_goal",
    "resolve_ideal_percent",
    "summarize_by_year",
    "summarize_debts",
]
