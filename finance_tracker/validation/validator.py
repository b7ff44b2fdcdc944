"""
Entry Validation

DESIGN DECISION: The models accept any non-negative amount so stored
collections always load. Whether a NEW entry is acceptable is decided
here, when the user submits it:

ERRORS (block the save):
- Amount of an income, expense, remittance or goal step is not above zero
- A record lacks the name everything else keys on (description,
  destination, creditor)

WARNINGS (shown, never block):
- Dates far in the future
- Absurdly large amounts
- Likely duplicates of an existing entry
- Expenses with no category (they are reported under "Outros")

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from finance_tracker.config import get_settings
from finance_tracker.models.records import (
    Debt,
    Expense,
    GoalStep,
    LedgerRecord,
    MonthlyBudgetLine,
    Remittance,
    Transaction,
    ValidationIssue,
    ValidationResult,
)


def _error(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=fix,
    )


def _warning(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
        suggested_fix=fix,
    )


class RecordValidator:
    """Checks a record before it is added to or replaced in a collection."""

    def __init__(self, today: Optional[date] = None):
        self._settings = get_settings().app
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def _check_amount(self, amount: Decimal, field: str = "amount") -> list[ValidationIssue]:
        issues = []
        if amount <= 0:
            issues.append(_error(
                field, "invalid_value",
                "Amount must be greater than zero",
                "Enter the amount as a positive number",
            ))
        elif amount > Decimal(str(self._settings.max_entry_amount)):
            issues.append(_warning(
                field, "suspicious_value",
                f"Amount ({amount:,.2f}) seems unusually high",
                "Please verify this amount is correct",
            ))
        return issues

    def _check_date(self, value: Optional[date], field: str) -> list[ValidationIssue]:
        tolerance = timedelta(days=self._settings.future_date_tolerance_days)
        if value and value > self.today + tolerance:
            return [_warning(
                field, "future_date",
                f"Date ({value}) is in the future",
                "Please verify the date is correct",
            )]
        return []

    def _check_transaction(self, record: Transaction) -> list[ValidationIssue]:
        issues = self._check_amount(record.amount)
        if not record.description:
            issues.append(_error(
                "description", "missing",
                "Description is required",
                "Describe the entry; business incomes use it as the service name",
            ))
        issues.extend(self._check_date(record.entry_date, "entry_date"))
        if isinstance(record, Expense) and not record.category:
            issues.append(_warning(
                "category", "missing",
                "No category: this expense will be reported under 'Outros'",
            ))
        return issues

    def _check_remittance(self, record: Remittance) -> list[ValidationIssue]:
        issues = self._check_amount(record.amount)
        if not record.destination:
            issues.append(_error(
                "destination", "missing",
                "Destination is required",
                "Say who or where the money was sent to",
            ))
        issues.extend(self._check_date(record.remittance_date, "remittance_date"))
        return issues

    def _check_debt(self, record: Debt) -> list[ValidationIssue]:
        issues = []
        if not record.creditor:
            issues.append(_error("creditor", "missing", "Creditor is required"))
        if record.total_amount <= 0:
            issues.append(_error(
                "total_amount", "invalid_value",
                "Total amount must be greater than zero",
            ))
        if record.installment_amount > record.total_amount > 0:
            issues.append(_warning(
                "installment_amount", "inconsistent",
                "Installment is larger than the total debt",
                "Please verify both amounts",
            ))
        return issues

    def _check_goal_step(self, record: GoalStep) -> list[ValidationIssue]:
        issues = self._check_amount(record.amount)
        issues.extend(self._check_date(record.step_date, "step_date"))
        return issues

    def _check_budget_line(self, record: MonthlyBudgetLine) -> list[ValidationIssue]:
        issues = []
        if not record.description:
            issues.append(_error("description", "missing", "Description is required"))
        return issues

    def _check_duplicates(
        self,
        record: LedgerRecord,
        existing: Iterable[LedgerRecord],
    ) -> list[ValidationIssue]:
        """Same date, amount and description as another entry."""
        if not isinstance(record, Transaction):
            return []
        for other in existing:
            if (
                isinstance(other, Transaction)
                and other.id != record.id
                and other.entry_date == record.entry_date
                and other.amount == record.amount
                and other.description.casefold() == record.description.casefold()
            ):
                return [_warning(
                    "duplicate", "potential_duplicate",
                    f"An entry '{other.description}' of {other.amount} on "
                    f"{other.entry_date} already exists",
                    "Please verify this isn't a duplicate entry",
                )]
        return []

    def validate(
        self,
        record: LedgerRecord,
        existing: Iterable[LedgerRecord] = (),
    ) -> ValidationResult:
        """
        Validate a record about to be saved.

        Args:
            record: The record being added or edited
            existing: Current collection, for duplicate detection
        """
        if isinstance(record, Transaction):
            issues = self._check_transaction(record)
        elif isinstance(record, Remittance):
            issues = self._check_remittance(record)
        elif isinstance(record, Debt):
            issues = self._check_debt(record)
        elif isinstance(record, GoalStep):
            issues = self._check_goal_step(record)
        elif isinstance(record, MonthlyBudgetLine):
            issues = self._check_budget_line(record)
        else:
            issues = []

        is_valid = not any(issue.severity == "error" for issue in issues)
        if is_valid:
            issues.extend(self._check_duplicates(record, existing))

        return ValidationResult(
            record_type=type(record).__name__.lower(),
            record_id=record.id,
            is_valid=is_valid,
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Plain-language summary shown next to the entry form."""
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if not result.is_valid:
            lines.append("❌ This entry can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
