"""Tests for entry validation."""

from datetime import date
from decimal import Decimal

import pytest

from finance_tracker.models import (
    Debt,
    Expense,
    Goal,
    GoalStep,
    Income,
    MonthlyBudgetLine,
    Remittance,
)
from finance_tracker.validation import RecordValidator


TODAY = date(2026, 10, 19)


@pytest.fixture
def validator():
    return RecordValidator(today=TODAY)


class TestTransactionValidation:

    def test_valid_expense(self, validator):
        result = validator.validate(Expense(
            description="Mercado", amount=Decimal("120"), category="Alimentação",
            entry_date=TODAY,
        ))
        assert result.is_valid
        assert result.issues == []
        assert result.record_type == "expense"

    def test_zero_amount_is_an_error(self, validator):
        result = validator.validate(Income(description="Salário", amount=Decimal("0")))
        assert not result.is_valid
        assert result.issues[0].field == "amount"

    def test_missing_description_is_an_error(self, validator):
        result = validator.validate(Income(description="  ", amount=Decimal("10")))
        assert not result.is_valid
        assert any(issue.field == "description" for issue in result.issues)

    def test_expense_without_category_warns(self, validator):
        result = validator.validate(Expense(description="Algo", amount=Decimal("10")))
        assert result.is_valid
        assert any("Outros" in warning for warning in result.warnings)

    def test_income_without_category_is_fine(self, validator):
        result = validator.validate(Income(description="Salário", amount=Decimal("10")))
        assert result.warnings == []

    def test_large_amount_warns(self, validator):
        result = validator.validate(Expense(
            description="Casa", amount=Decimal("20000000"), category="Habitação",
        ))
        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_value"

    def test_far_future_date_warns(self, validator):
        result = validator.validate(Expense(
            description="Viagem", amount=Decimal("10"), category="Lazer",
            entry_date=date(2027, 6, 1),
        ))
        assert result.is_valid
        assert result.issues[0].issue_type == "future_date"

    def test_near_future_date_is_fine(self, validator):
        result = validator.validate(Expense(
            description="Conta", amount=Decimal("10"), category="Utilities",
            entry_date=date(2026, 11, 5),
        ))
        assert result.issues == []

    def test_duplicate_warns(self, validator):
        existing = [Expense(
            description="Mercado", amount=Decimal("50"), category="Alimentação", entry_date=TODAY,
        )]
        result = validator.validate(
            Expense(description="mercado", amount=Decimal("50"), category="Alimentação",
                    entry_date=TODAY),
            existing,
        )
        assert result.is_valid
        assert result.issues[0].issue_type == "potential_duplicate"

    def test_editing_a_record_is_not_its_own_duplicate(self, validator):
        original = Expense(
            description="Mercado", amount=Decimal("50"), category="Alimentação", entry_date=TODAY,
        )
        result = validator.validate(original.model_copy(), [original])
        assert result.issues == []


class TestOtherValidation:

    def test_remittance_needs_destination(self, validator):
        result = validator.validate(Remittance(remittance_date=TODAY, amount=Decimal("100")))
        assert not result.is_valid
        assert result.issues[0].field == "destination"

    def test_debt_rules(self, validator):
        result = validator.validate(Debt(creditor="", total_amount=Decimal("0")))
        assert result.error_count == 2

        odd = validator.validate(Debt(
            creditor="Banco", total_amount=Decimal("100"), installment_amount=Decimal("200"),
        ))
        assert odd.is_valid
        assert odd.issues[0].issue_type == "inconsistent"

    def test_goal_step_needs_amount(self, validator):
        assert not validator.validate(GoalStep(amount=Decimal("0"))).is_valid
        assert validator.validate(GoalStep(amount=Decimal("5"))).is_valid

    def test_budget_line_needs_description(self, validator):
        assert not validator.validate(MonthlyBudgetLine()).is_valid

    def test_goal_passes(self, validator):
        assert validator.validate(Goal(name="Reserva")).is_valid


class TestUserFriendlySummary:

    def test_all_good(self, validator):
        result = validator.validate(Income(description="Salário", amount=Decimal("10")))
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed."

    def test_errors_and_fixes(self, validator):
        result = validator.validate(Income(description="Salário", amount=Decimal("0")))
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("❌")
        assert "greater than zero" in summary
        assert "💡" in summary

    def test_warnings(self, validator):
        result = validator.validate(Expense(description="Algo", amount=Decimal("10")))
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("⚠️")
