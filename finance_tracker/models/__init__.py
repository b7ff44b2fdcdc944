"""Data models package."""

from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_tracker.models.records import (
    Classification,
    Currency,
    Debt,
    DebtReason,
    DebtStatus,
    Expense,
    ExpenseType,
    Goal,
    GoalStep,
    GoalStepType,
    Income,
    LedgerRecord,
    MonthlyBudgetLine,
    Recurrence,
    Remittance,
    SavedReport,
    Transaction,
    UserSession,
    ValidationIssue,
    ValidationResult,
    parse_amount,
)
from finance_tracker.models.reports import (
    AdherenceStatus,
    BalanceSummary,
    CategoryDistribution,
    CategoryShare,
    ClassificationTotal,
    DebtSummary,
    FinanceDashboard,
    GoalBalance,
    IdealSource,
    MarginAdvice,
    MarginTier,
    ProfitabilityReport,
    RemittanceSummary,
    RemittanceYear,
    ServiceProfitability,
)

__all__ = [
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Records
    "Classification",
    "Currency",
    "Debt",
    "DebtReason",
    "DebtStatus",
    "Expense",
    "ExpenseType",
    "Goal",
    "GoalStep",
    "GoalStepType",
    "Income",
    "LedgerRecord",
    "MonthlyBudgetLine",
    "Recurrence",
    "Remittance",
    "SavedReport",
    "Transaction",
    "UserSession",
    "ValidationIssue",
    "ValidationResult",
    "parse_amount",
    # Reports
    "AdherenceStatus",
    "BalanceSummary",
    "CategoryDistribution",
    "CategoryShare",
    "ClassificationTotal",
    "DebtSummary",
    "FinanceDashboard",
    "GoalBalance",
    "IdealSource",
    "MarginAdvice",
    "MarginTier",
    "ProfitabilityReport",
    "RemittanceSummary",
    "RemittanceYear",
    "ServiceProfitability",
]
