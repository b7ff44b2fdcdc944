"""
Category Distribution & Budget Adherence

For every expense category: its share of total spend, the share it
ideally should have, how far off it is, and how it moved since the last
archived report.

IDEAL PERCENTAGE RESOLUTION (first match wins):
1. USER     - a monthly budget line whose description or type names the
              category, with an ideal percentage above zero
2. LEXICON  - the configured default for that category name
3. FALLBACK - the configured global fallback (10 by default)

ADHERENCE: ratio = total / (total_spend * ideal / 100)
    ratio >  1.2        -> at risk
    0.9 < ratio <= 1.2  -> caution
    ratio <= 0.9        -> under control
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from finance_tracker.analytics.common import (
    ZERO,
    as_decimal,
    names_match,
    normalize_key,
    percent_of,
)
from finance_tracker.config import AnalysisSettings, get_settings
from finance_tracker.models.records import (
    Classification,
    MonthlyBudgetLine,
    SavedReport,
    Transaction,
    parse_amount,
)
from finance_tracker.models.reports import (
    AdherenceStatus,
    CategoryDistribution,
    CategoryShare,
    ClassificationTotal,
    IdealSource,
)


UNCATEGORIZED = "Outros"

# Key of the archived expense list inside a SavedReport's data
ARCHIVED_EXPENSES_KEY = "Resumo_Saidas"


def find_budget_line(
    category: str,
    budget_lines: Iterable[MonthlyBudgetLine],
) -> Optional[MonthlyBudgetLine]:
    """First budget line whose description or type names the category."""
    for line in budget_lines:
        if names_match(line.description, category) or names_match(line.line_type, category):
            return line
    return None


def resolve_ideal_percent(
    category: str,
    budget_lines: Iterable[MonthlyBudgetLine] = (),
    settings: Optional[AnalysisSettings] = None,
) -> tuple[float, IdealSource]:
    settings = settings or get_settings().analysis

    line = find_budget_line(category, budget_lines)
    if line is not None and line.ideal_percent and line.ideal_percent > 0:
        return float(line.ideal_percent), IdealSource.USER

    default = settings.ideal_percentages.get(normalize_key(category))
    if default and default > 0:
        return float(default), IdealSource.LEXICON

    return settings.fallback_ideal_percent, IdealSource.FALLBACK


def classify_adherence(
    ratio: float,
    settings: Optional[AnalysisSettings] = None,
) -> AdherenceStatus:
    settings = settings or get_settings().analysis
    if ratio > settings.at_risk_ratio:
        return AdherenceStatus.AT_RISK
    if ratio > settings.caution_ratio:
        return AdherenceStatus.CAUTION
    return AdherenceStatus.UNDER_CONTROL


def latest_report(history: Sequence[SavedReport]) -> Optional[SavedReport]:
    if not history:
        return None
    return max(history, key=lambda report: report.timestamp)


def archived_category_total(report: SavedReport, category: str) -> Decimal:
    """Sum of the archived expenses filed under `category`."""
    total = ZERO
    for entry in report.data.get(ARCHIVED_EXPENSES_KEY) or []:
        if names_match(entry.get("categoria"), category):
            total += parse_amount(entry.get("valor"))
    return total


def compute_trend(current: Decimal, previous: Decimal) -> float:
    """Percent change; 0 when there is nothing to compare against."""
    return percent_of(as_decimal(current) - as_decimal(previous), previous)


def build_category_distribution(
    expenses: Iterable[Transaction],
    budget_lines: Iterable[MonthlyBudgetLine] = (),
    history: Sequence[SavedReport] = (),
    settings: Optional[AnalysisSettings] = None,
) -> CategoryDistribution:
    """
    Share, ideal, adherence and trend per expense category.

    Categories are sorted by total, largest first. Zero total spend gives
    an empty report.
    """
    settings = settings or get_settings().analysis
    expenses = list(expenses)
    budget_lines = list(budget_lines)

    total_spend = sum((as_decimal(e.amount) for e in expenses), ZERO)
    if total_spend == 0:
        return CategoryDistribution(total_spend=ZERO, categories=[])

    names: dict[str, str] = {}
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    for expense in expenses:
        name = (expense.category or "").strip() or UNCATEGORIZED
        key = normalize_key(name)
        names.setdefault(key, name)
        totals[key] = totals.get(key, ZERO) + as_decimal(expense.amount)
        counts[key] = counts.get(key, 0) + 1

    previous = latest_report(history)
    saving_rate = Decimal(str(settings.saving_insight_rate))

    shares = []
    for key, name in names.items():
        total = totals[key]
        ideal, source = resolve_ideal_percent(name, budget_lines, settings)
        expected = total_spend * Decimal(str(ideal)) / 100
        ratio = float(total / expected) if expected else 0.0
        line = find_budget_line(name, budget_lines)

        trend = 0.0
        if previous is not None:
            trend = compute_trend(total, archived_category_total(previous, name))

        shares.append(CategoryShare(
            category=name,
            total=total,
            count=counts[key],
            actual_percent=percent_of(total, total_spend),
            ideal_percent=ideal,
            ideal_source=source,
            ratio=ratio,
            status=classify_adherence(ratio, settings),
            trend_percent=trend,
            saving_insight=total * saving_rate,
            planned_amount=line.average_amount if line is not None else None,
        ))

    shares.sort(key=lambda share: share.total, reverse=True)
    return CategoryDistribution(total_spend=total_spend, categories=shares)


def build_classification_profile(
    expenses: Iterable[Transaction],
) -> list[ClassificationTotal]:
    """Spend per classification. Unclassified expenses count as essential."""
    expenses = list(expenses)
    totals = {classification: ZERO for classification in Classification}
    for expense in expenses:
        classification = expense.classification or Classification.ESSENTIAL
        totals[classification] += as_decimal(expense.amount)

    total_spend = sum(totals.values(), ZERO)
    return [
        ClassificationTotal(
            classification=classification,
            total=total,
            percent=percent_of(total, total_spend),
        )
        for classification, total in totals.items()
    ]
