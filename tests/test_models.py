"""
Tests for Finance Tracker

Test strategy:
1. Unit tests for individual components (models, validators, aggregation)
2. Integration tests for flows (with in-memory storage and a mocked assistant)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from finance_tracker.models.records import (
    Classification,
    Currency,
    Debt,
    DebtStatus,
    Expense,
    ExpenseType,
    Goal,
    GoalStep,
    GoalStepType,
    Income,
    MonthlyBudgetLine,
    Remittance,
    SavedReport,
    UserSession,
    ValidationIssue,
    ValidationResult,
    parse_amount,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestParseAmount:
    """Tests for amount coercion."""

    def test_blank_values_are_zero(self):
        assert parse_amount(None) == Decimal("0")
        assert parse_amount("") == Decimal("0")
        assert parse_amount("   ") == Decimal("0")

    def test_numbers_and_strings(self):
        assert parse_amount(12) == Decimal("12")
        assert parse_amount(0.1) == Decimal("0.1")
        assert parse_amount("1500.50") == Decimal("1500.50")

    def test_decimal_comma(self):
        assert parse_amount("12,5") == Decimal("12.5")

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_amount("twelve")
        with pytest.raises(ValueError):
            parse_amount(True)


class TestTransactionModels:
    """Tests for income and expense records."""

    def test_reads_stored_keys(self):
        """Records load from the stored (Portuguese) key names."""
        expense = Expense.model_validate({
            "id": 1712345678901,
            "data": "2026-10-03",
            "descricao": "Aluguel",
            "valor": "1200",
            "categoria": "Moradia",
            "tipoDeGasto": "Fixo",
            "classificacao": "Essencial",
        })
        assert expense.id == "1712345678901"
        assert expense.entry_date == date(2026, 10, 3)
        assert expense.amount == Decimal("1200")
        assert expense.is_fixed
        assert expense.classification == Classification.ESSENTIAL

    def test_to_storage_uses_aliases(self):
        income = Income(description="Consultoria", amount=Decimal("500"), category="Serviços")
        stored = income.to_storage()
        assert stored["descricao"] == "Consultoria"
        assert stored["valor"] == "500"
        assert stored["categoria"] == "Serviços"
        assert "tipoDeGasto" not in stored

    def test_expense_defaults_to_variable(self):
        expense = Expense(description="Uber", amount=Decimal("30"))
        assert expense.expense_type == ExpenseType.VARIABLE
        assert expense.is_variable

    def test_strips_whitespace(self):
        income = Income(description="  Salário  ", amount=Decimal("10"))
        assert income.description == "Salário"

    def test_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            Expense(description="Test", amount=Decimal("-100"))

    def test_blank_optionals_become_none(self):
        expense = Expense.model_validate({
            "descricao": "Café", "valor": 5, "data": "", "metaId": "", "categoria": None,
        })
        assert expense.entry_date is None
        assert expense.goal_id is None
        assert expense.category == ""

    def test_default_currency(self):
        assert Income(description="x", amount=1).currency == Currency.USD

    def test_ids_are_unique(self):
        assert Income(amount=1).id != Income(amount=1).id


class TestOtherRecords:
    """Tests for budget lines, debts, remittances and goals."""

    def test_budget_line_from_storage(self):
        line = MonthlyBudgetLine.model_validate({
            "descricao": "Moradia",
            "valorMedio": "1500",
            "percentualIdeal": 30,
            "vencimento": "",
        })
        assert line.ideal_percent == 30.0
        assert line.due_day is None

    def test_budget_line_ideal_bounds(self):
        with pytest.raises(ValueError):
            MonthlyBudgetLine(description="x", ideal_percent=120)

    def test_debt_outstanding_by_installments(self):
        debt = Debt(
            creditor="Banco",
            total_amount=Decimal("1200"),
            installment_amount=Decimal("100"),
            installments_total=12,
            installments_paid=4,
        )
        assert debt.remaining_installments == 8
        assert debt.outstanding_amount == Decimal("800")

    def test_debt_outstanding_without_installments(self):
        debt = Debt(creditor="Amigo", total_amount=Decimal("300"))
        assert debt.outstanding_amount == Decimal("300")

    def test_debt_paid_cannot_exceed_total(self):
        with pytest.raises(ValueError):
            Debt(creditor="Banco", installments_total=3, installments_paid=4)

    def test_debt_status_values(self):
        debt = Debt.model_validate({"credor": "Loja", "status": "Quitada", "motivo": "Outro"})
        assert debt.status == DebtStatus.SETTLED

    def test_remittance_requires_date(self):
        with pytest.raises(ValueError):
            Remittance(amount=Decimal("100"), destination="Mãe")

    def test_goal_balance_may_be_negative(self):
        goal = Goal.model_validate({"name": "Viagem", "saldo": "-50"})
        assert goal.balance == Decimal("-50")
        assert goal.icon == "🎯"

    def test_goal_requires_name(self):
        with pytest.raises(ValueError):
            Goal(name="   ")

    def test_goal_step_blank_type_is_contribution(self):
        step = GoalStep.model_validate({"quanto": 20, "tipo": ""})
        assert step.step_type == GoalStepType.CONTRIBUTION


class TestSavedReport:
    """Tests for the write-once archive."""

    def test_snapshot_labels_and_file_name(self):
        report = SavedReport.snapshot(
            {"Resumo_Entradas": []},
            "controle-financeiro-pessoal",
            moment=datetime(2026, 10, 19, 12, 0),
        )
        assert report.period_label == "Outubro/2026"
        assert report.file_name == "controle-financeiro-pessoal-outubro-2026"

    def test_yearly_file_name(self):
        report = SavedReport.snapshot(
            {}, "metas-financeiras", moment=datetime(2026, 3, 1), monthly=False
        )
        assert report.period_label == "Março/2026"
        assert report.file_name == "metas-financeiras-2026"

    def test_snapshot_is_deep_copy(self):
        payload = {"Resumo_Saidas": [{"descricao": "Aluguel", "valor": "1000"}]}
        report = SavedReport.snapshot(payload, "r")
        payload["Resumo_Saidas"][0]["valor"] = "9999"
        payload["Resumo_Saidas"].append({"descricao": "Extra"})
        assert report.data["Resumo_Saidas"] == [{"descricao": "Aluguel", "valor": "1000"}]

    def test_report_is_frozen(self):
        report = SavedReport.snapshot({}, "r")
        with pytest.raises(ValueError):
            report.period_label = "Other"

    def test_to_storage_uses_aliases(self):
        stored = SavedReport.snapshot({}, "r", moment=datetime(2026, 1, 5)).to_storage()
        assert stored["monthYear"] == "Janeiro/2026"
        assert stored["fileName"] == "r-janeiro-2026"
        assert SavedReport.model_validate(stored).period_label == "Janeiro/2026"


class TestUserSession:

    def test_email_is_lowercased(self):
        assert UserSession(email=" Ana@Example.com ").email == "ana@example.com"

    def test_rejects_non_email(self):
        with pytest.raises(ValueError):
            UserSession(email="not-an-email")


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description="Boom",
            error_message="stack",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "system_error"
        assert log_dict["severity"] == "error"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to Sheets row format."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            user_email="ana@example.com",
            entity_type="expenses",
            entity_id="abc",
            correlation_id=correlation_id,
            description="Deleted",
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "record_deleted"
        assert row[4] == "ana@example.com"
        assert row[6] == "abc"
        assert row[7] == str(correlation_id)

    def test_builder_record_created(self):
        event = AuditEventBuilder.record_created(
            collection="expenses",
            record_id="r1",
            summary="Aluguel - 1200",
        )
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.entity_type == "expenses"
        assert event.is_user_action
        assert "Aluguel" in event.description

    def test_builder_report_archived(self):
        event = AuditEventBuilder.report_archived(
            report_id="rep",
            period_label="Outubro/2026",
            history_key="personal_finance_history",
            cleared=["incomes", "expenses"],
        )
        assert event.details["cleared_collections"] == ["incomes", "expenses"]
        assert "Outubro/2026" in event.description

    def test_builder_validation_failed_is_warning(self):
        event = AuditEventBuilder.validation_failed("expense", [{"field": "amount"}])
        assert event.severity == AuditSeverity.WARNING


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            record_type="expense",
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than zero",
                    severity="error",
                ),
                ValidationIssue(
                    field="category",
                    issue_type="missing",
                    message="No category",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        result = ValidationResult(
            record_type="expense",
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="entry_date",
                    issue_type="suspicious_value",
                    message="Date is in the future",
                    severity="warning",
                ),
            ],
            warnings=["Date is in the future"],
        )
        assert not result.has_errors
        assert result.error_count == 0

    def test_issue_severity_is_constrained(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")

    def test_timestamps_are_utc(self):
        naive = SavedReport.snapshot({}, "r", moment=datetime(2026, 10, 1, 9, 0))
        assert naive.timestamp == datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

        local = datetime(2026, 10, 1, 9, 0, tzinfo=timezone(timedelta(hours=-3)))
        shifted = SavedReport.snapshot({}, "r", moment=local)
        assert shifted.timestamp == datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
        assert shifted.period_label == "Outubro/2026"

        assert SavedReport.snapshot({}, "r").timestamp.tzinfo is not None

    def test_stored_iso_timestamp_is_readable(self):
        report = SavedReport.model_validate({
            "timestamp": "2026-09-30T12:00:00.000Z",
            "monthYear": "Setembro/2026",
        })
        assert report.timestamp == datetime(2026, 9, 30, 12, 0, tzinfo=timezone.utc)
        assert report.timestamp < SavedReport.snapshot({}, "r", moment=datetime(2026, 10, 1)).timestamp
