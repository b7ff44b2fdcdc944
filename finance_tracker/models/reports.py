"""
Report Models

Read-only results produced by the aggregation engine. Money stays
Decimal; percentages and ratios are floats. Every division behind these
numbers is guarded, so none of them is ever NaN or infinite.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.records import Classification, Remittance


class MarginTier(str, Enum):
    """Advisory tier of a profit margin. Drives text only, never numbers."""
    ALERT = "alert"
    HEALTHY = "healthy"
    EXCELLENT = "excellent"


class AdherenceStatus(str, Enum):
    """How a category's actual share compares with its ideal share."""
    AT_RISK = "at_risk"
    CAUTION = "caution"
    UNDER_CONTROL = "under_control"

    @property
    def label(self) -> str:
        return {
            AdherenceStatus.AT_RISK: "Risk zone",
            AdherenceStatus.CAUTION: "Attention",
            AdherenceStatus.UNDER_CONTROL: "Under control",
        }[self]

    @property
    def color(self) -> str:
        return {
            AdherenceStatus.AT_RISK: "red",
            AdherenceStatus.CAUTION: "yellow",
            AdherenceStatus.UNDER_CONTROL: "green",
        }[self]


class IdealSource(str, Enum):
    """Which resolution tier supplied a category's ideal percentage."""
    USER = "user"
    LEXICON = "lexicon"
    FALLBACK = "fallback"


class _Report(BaseModel):
    model_config = ConfigDict(frozen=True)


class BalanceSummary(_Report):
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    margin: float = Field(
        default=0.0,
        description="balance / total_income * 100, or 0 without income"
    )


class MarginAdvice(_Report):
    tier: MarginTier
    status: str
    message: str
    detail: str
    recommendation: str


class ServiceProfitability(_Report):
    """One service line of the profitability report."""

    service: str = Field(..., description="Display name, first spelling seen")
    revenue: Decimal
    direct_cost: Decimal
    fixed_share: Decimal
    total_cost: Decimal
    profit: Decimal
    margin: float
    tier: MarginTier


class ProfitabilityReport(_Report):
    services: list[ServiceProfitability] = Field(default_factory=list)
    total_fixed: Decimal = Decimal("0")
    fixed_share: Decimal = Decimal("0")
    unattributed_variable_cost: Decimal = Field(
        default=Decimal("0"),
        description="Variable expenses naming no service line; left out of every line"
    )
    balance: BalanceSummary = Field(default_factory=BalanceSummary)
    overall_tier: MarginTier = MarginTier.ALERT

    def for_service(self, name: str) -> Optional[ServiceProfitability]:
        key = name.strip().casefold()
        for line in self.services:
            if line.service.strip().casefold() == key:
                return line
        return None


class CategoryShare(_Report):
    """One expense category of the distribution report."""

    category: str
    total: Decimal
    count: int
    actual_percent: float
    ideal_percent: float
    ideal_source: IdealSource
    ratio: float
    status: AdherenceStatus
    trend_percent: float = 0.0
    saving_insight: Decimal = Decimal("0")
    planned_amount: Optional[Decimal] = Field(
        default=None,
        description="Average amount of the budget line linked to this category"
    )


class CategoryDistribution(_Report):
    total_spend: Decimal = Decimal("0")
    categories: list[CategoryShare] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.categories

    def for_category(self, name: str) -> Optional[CategoryShare]:
        key = name.strip().casefold()
        for share in self.categories:
            if share.category.strip().casefold() == key:
                return share
        return None


class ClassificationTotal(_Report):
    classification: Classification
    total: Decimal
    percent: float


class GoalBalance(_Report):
    goal_id: Optional[str] = None
    goal_name: str
    external_contributions: Decimal = Decimal("0")
    step_contributions: Decimal = Decimal("0")
    withdrawals: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")

    @property
    def total_contributions(self) -> Decimal:
        return self.external_contributions + self.step_contributions


class RemittanceYear(_Report):
    year: int
    total: Decimal = Decimal("0")
    items: list[Remittance] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


class RemittanceSummary(_Report):
    current_year: int
    current: RemittanceYear
    historical: list[RemittanceYear] = Field(
        default_factory=list,
        description="Past years, newest first"
    )
    upcoming: list[RemittanceYear] = Field(
        default_factory=list,
        description="Future-dated years, soonest first"
    )


class DebtSummary(_Report):
    """Totals of the debt ledger. Never part of the income/expense balance."""

    count: int = 0
    total_debt: Decimal = Decimal("0")
    outstanding: Decimal = Decimal("0")
    monthly_commitment: Decimal = Field(
        default=Decimal("0"),
        description="Sum of installments of debts not yet settled"
    )
    by_status: dict[str, int] = Field(default_factory=dict)


class FinanceDashboard(_Report):
    """Everything the personal or business dashboard shows for one period."""

    scope: str
    balance: BalanceSummary
    distribution: CategoryDistribution
    classification: list[ClassificationTotal] = Field(default_factory=list)
    profitability: Optional[ProfitabilityReport] = None
    advice: Optional[MarginAdvice] = None
