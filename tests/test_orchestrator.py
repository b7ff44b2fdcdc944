"""
Integration tests for the flows.

Storage is in-memory and the Gemini service is replaced by a mock, so
no network is touched.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from finance_tracker.agents import AssistantError, Completion, GroundingSource
from finance_tracker.audit import AuditLogger
from finance_tracker.config import AnalysisSettings
from finance_tracker.models import (
    AuditEventType,
    Debt,
    Expense,
    ExpenseType,
    Goal,
    GoalStep,
    GoalStepType,
    Income,
    MarginTier,
    Remittance,
    UserSession,
)
from finance_tracker.orchestrator import (
    ASSISTANT_NOT_CONFIGURED,
    ASSISTANT_UNAVAILABLE,
    BUSINESS,
    PERSONAL,
    AssistantFlow,
    LedgerFlow,
    RecordValidationError,
    ReportFlow,
    create_app_components,
)
from finance_tracker.services.storage import (
    CollectionRepository,
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    StorageKeys,
)
from finance_tracker.validation import RecordValidator


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def repository():
    return CollectionRepository(InMemoryKeyValueStorage())


@pytest.fixture
def ledger(repository, audit_storage):
    return LedgerFlow(
        repository,
        validator=RecordValidator(today=date(2026, 10, 19)),
        audit_logger=AuditLogger(audit_storage),
    )


@pytest.fixture
def reports(repository, audit_storage):
    return ReportFlow(repository, AuditLogger(audit_storage), AnalysisSettings())


def event_types(audit_storage):
    events = asyncio.run(audit_storage.get_recent_events())
    return [event.event_type for event in reversed(events)]


class TestLedgerFlow:
    """Tests for validated, audited record entry."""

    def test_add_record_saves_and_audits(self, ledger, repository, audit_storage):
        record = Expense(description="Mercado", amount=Decimal("80"), category="Alimentação")
        result = asyncio.run(ledger.add_record(StorageKeys.EXPENSES, record))

        assert result.is_valid
        saved = asyncio.run(repository.load(StorageKeys.EXPENSES, Expense))
        assert [r.id for r in saved] == [record.id]
        assert event_types(audit_storage) == [AuditEventType.RECORD_CREATED]

    def test_invalid_record_is_rejected(self, ledger, repository, audit_storage):
        record = Expense(description="Mercado", amount=Decimal("0"))
        with pytest.raises(RecordValidationError) as exc_info:
            asyncio.run(ledger.add_record(StorageKeys.EXPENSES, record))

        assert not exc_info.value.result.is_valid
        assert asyncio.run(repository.load(StorageKeys.EXPENSES, Expense)) == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_warnings_do_not_block(self, ledger, repository):
        record = Expense(description="Algo", amount=Decimal("10"))
        result = asyncio.run(ledger.add_record(StorageKeys.EXPENSES, record))
        assert result.warnings
        assert len(asyncio.run(repository.load(StorageKeys.EXPENSES, Expense))) == 1

    def test_update_and_delete(self, ledger, repository, audit_storage):
        record = Income(description="Salário", amount=Decimal("100"))

        async def scenario():
            await ledger.add_record(StorageKeys.INCOMES, record)
            changed = record.model_copy(update={"amount": Decimal("150")})
            await ledger.update_record(StorageKeys.INCOMES, changed)
            after_update = await repository.load(StorageKeys.INCOMES, Income)
            deleted = await ledger.delete_record(StorageKeys.INCOMES, Income, record.id)
            return after_update, deleted

        after_update, deleted = asyncio.run(scenario())
        assert after_update[0].amount == Decimal("150")
        assert deleted is True
        assert event_types(audit_storage) == [
            AuditEventType.RECORD_CREATED,
            AuditEventType.RECORD_UPDATED,
            AuditEventType.RECORD_DELETED,
        ]

    def test_delete_goal_removes_steps(self, ledger, repository):
        goal = Goal(name="Viagem")

        async def scenario():
            await ledger.add_record(StorageKeys.GOALS, goal)
            await ledger.add_goal_step(goal, GoalStep(amount=Decimal("10")))
            before = await repository.storage.get(StorageKeys.goal_steps(goal.id))
            await ledger.delete_goal(goal.id)
            after = await repository.storage.get(StorageKeys.goal_steps(goal.id))
            return before, after

        before, after = asyncio.run(scenario())
        assert before is not None
        assert after is None

    def test_rename_goal_keeps_contributions(self, ledger, repository, reports, audit_storage):
        goal = Goal(name="Viagem")

        async def scenario():
            await repository.save(StorageKeys.GOALS, [goal])
            await repository.save(StorageKeys.EXPENSES, [
                Expense(description="viagem ", amount=Decimal("40"), category="Meta"),
                Expense(description="Viagem", amount=Decimal("9"), category="Lazer"),
            ])
            before = await reports.goal_balances()
            renamed = await ledger.rename_goal(goal, "Japão 2027", "🗾")
            after = await reports.goal_balances()
            expenses = await repository.load(StorageKeys.EXPENSES, Expense)
            return before, renamed, after, expenses

        before, renamed, after, expenses = asyncio.run(scenario())
        assert before[0].balance == Decimal("40")
        assert renamed.name == "Japão 2027"
        assert renamed.icon == "🗾"
        assert after[0].goal_name == "Japão 2027"
        assert after[0].balance == Decimal("40")
        assert [expense.goal_id for expense in expenses] == [goal.id, None]
        assert AuditEventType.RECORD_UPDATED in event_types(audit_storage)

    def test_rename_goal_requires_name(self, ledger, repository):
        goal = Goal(name="Viagem")
        asyncio.run(repository.save(StorageKeys.GOALS, [goal]))
        with pytest.raises(ValueError):
            asyncio.run(ledger.rename_goal(goal, "   "))
        assert asyncio.run(repository.load(StorageKeys.GOALS, Goal))[0].name == "Viagem"

    def test_paying_installments_lowers_outstanding(self, ledger, reports):
        debt = Debt(
            creditor="Banco",
            total_amount=Decimal("1200"),
            installment_amount=Decimal("100"),
            installments_total=12,
        )

        async def scenario():
            await ledger.add_record(StorageKeys.DEBTS, debt)
            before = await reports.debt_summary()
            paid = Debt.model_validate({**debt.model_dump(), "installments_paid": 3})
            await ledger.update_record(StorageKeys.DEBTS, paid)
            return before, await reports.debt_summary()

        before, after = asyncio.run(scenario())
        assert before.outstanding == Decimal("1200")
        assert after.outstanding == Decimal("900")

    def test_known_categories(self, ledger, repository):
        asyncio.run(repository.save(StorageKeys.EXPENSES, [
            Expense(description="a", amount=Decimal("1"), category="Pets"),
            Expense(description="b", amount=Decimal("1"), category="pets"),
            Expense(description="c", amount=Decimal("1"), category="LAZER"),
        ]))
        settings = AnalysisSettings(ideal_percentages={"lazer": 10.0, "habitação": 30.0})

        categories = asyncio.run(ledger.known_categories(settings=settings))
        assert categories == ["Habitação", "LAZER", "Pets"]


class TestReportFlow:
    """Tests for dashboards, archives and derived balances."""

    def test_business_dashboard(self, repository, reports):
        async def scenario():
            await repository.save(StorageKeys.BUSINESS_INCOMES, [
                Income(description="Consulting", amount=Decimal("1000")),
            ])
            await repository.save(StorageKeys.BUSINESS_EXPENSES, [
                Expense(description="Consulting", amount=Decimal("200"),
                        expense_type=ExpenseType.VARIABLE, category="Serviços"),
                Expense(description="Office Rent", amount=Decimal("300"),
                        expense_type=ExpenseType.FIXED, category="Habitação"),
            ])
            return await reports.dashboard(BUSINESS)

        dashboard = asyncio.run(scenario())
        assert dashboard.scope == "business"
        assert dashboard.balance.balance == Decimal("500")
        line = dashboard.profitability.for_service("consulting")
        assert line.profit == Decimal("500")
        assert line.tier == MarginTier.HEALTHY
        assert dashboard.advice.tier == MarginTier.HEALTHY
        assert len(dashboard.distribution.categories) == 2

    def test_personal_dashboard_has_no_profitability(self, repository, reports):
        asyncio.run(repository.save(StorageKeys.EXPENSES, [
            Expense(description="Mercado", amount=Decimal("100"), category="Alimentação"),
        ]))
        dashboard = asyncio.run(reports.dashboard(PERSONAL))
        assert dashboard.profitability is None
        assert dashboard.advice is None
        assert dashboard.distribution.total_spend == Decimal("100")

    def test_archive_period(self, repository, reports, audit_storage):
        async def scenario():
            await repository.save(StorageKeys.INCOMES, [
                Income(description="Salário", amount=Decimal("3000")),
            ])
            await repository.save(StorageKeys.EXPENSES, [
                Expense(description="Cinema", amount=Decimal("40"), category="Lazer"),
            ])
            report = await reports.archive_period(PERSONAL, moment=datetime(2026, 10, 31))
            return (
                report,
                await reports.history(PERSONAL),
                await repository.load(StorageKeys.INCOMES, Income),
                await repository.load(StorageKeys.EXPENSES, Expense),
            )

        report, history, incomes, expenses = asyncio.run(scenario())
        assert report.file_name == "controle-financeiro-pessoal-outubro-2026"
        assert history[0].id == report.id
        assert history[0].data["Gastos_Por_Categoria"] == [{"name": "Lazer", "value": 40.0}]
        assert incomes == []
        assert expenses == []
        assert event_types(audit_storage) == [AuditEventType.REPORT_ARCHIVED]

    def test_trend_uses_archived_month(self, repository, reports):
        async def scenario():
            await repository.save(StorageKeys.EXPENSES, [
                Expense(description="Cinema", amount=Decimal("40"), category="Lazer"),
            ])
            await reports.archive_period(PERSONAL, moment=datetime(2026, 9, 30))
            await repository.save(StorageKeys.EXPENSES, [
                Expense(description="Show", amount=Decimal("60"), category="Lazer"),
            ])
            return await reports.dashboard(PERSONAL)

        dashboard = asyncio.run(scenario())
        assert dashboard.distribution.categories[0].trend_percent == pytest.approx(50.0)

    def test_dashboard_with_legacy_and_new_reports(self, repository, reports):
        legacy = {
            "id": "1727697600000",
            "timestamp": "2026-09-30T12:00:00.000Z",
            "monthYear": "Setembro/2026",
            "fileName": "controle-financeiro-pessoal-setembro-2026",
            "data": {"Resumo_Saidas": [{"categoria": "Lazer", "valor": 100}]},
        }

        async def scenario():
            await repository.storage.set(StorageKeys.PERSONAL_HISTORY, json.dumps([legacy]))
            await repository.save(StorageKeys.EXPENSES, [
                Expense(description="Cinema", amount=Decimal("40"), category="Lazer"),
            ])
            await reports.archive_period(PERSONAL, moment=datetime(2026, 10, 31))
            await repository.save(StorageKeys.EXPENSES, [
                Expense(description="Show", amount=Decimal("60"), category="Lazer"),
            ])
            return await reports.dashboard(PERSONAL), await reports.history(PERSONAL)

        dashboard, history = asyncio.run(scenario())
        assert [report.period_label for report in history] == ["Outubro/2026", "Setembro/2026"]
        assert dashboard.distribution.categories[0].trend_percent == pytest.approx(50.0)

    def test_delete_report(self, reports, audit_storage):
        report = asyncio.run(reports.archive_period(BUSINESS))
        assert report.file_name.startswith("business-financeiro-")
        assert asyncio.run(reports.delete_report(report.id, BUSINESS)) is True
        assert asyncio.run(reports.history(BUSINESS)) == []
        assert event_types(audit_storage)[-1] == AuditEventType.REPORT_DELETED

    def test_goal_balances_are_cached(self, repository, reports):
        goal = Goal(name="Viagem")

        async def scenario():
            await repository.save(StorageKeys.GOALS, [goal])
            await repository.save(StorageKeys.goal_steps(goal.id), [
                GoalStep(amount=Decimal("100")),
                GoalStep(amount=Decimal("50")),
                GoalStep(amount=Decimal("30"), step_type=GoalStepType.WITHDRAWAL),
            ])
            await repository.save(StorageKeys.EXPENSES, [
                Expense(description="Viagem", amount=Decimal("5"), category="Meta"),
            ])
            balances = await reports.goal_balances()
            stored = await repository.load(StorageKeys.GOALS, Goal)
            return balances, stored

        balances, stored = asyncio.run(scenario())
        assert balances[0].balance == Decimal("125")
        assert stored[0].balance == Decimal("125")

    def test_remittance_and_debt_summaries(self, repository, reports):
        asyncio.run(repository.save(StorageKeys.REMITTANCES, [
            Remittance(remittance_date=date(2026, 2, 1), amount=Decimal("200"), destination="Mãe"),
            Remittance(remittance_date=date(2025, 2, 1), amount=Decimal("100"), destination="Mãe"),
        ]))
        summary = asyncio.run(reports.remittance_summary(today=date(2026, 10, 19)))
        assert summary.current.total == Decimal("200")
        assert summary.historical[0].year == 2025

        debts = asyncio.run(reports.debt_summary())
        assert debts.count == 0


class TestAssistantFlow:
    """Tests for assistant requests with a mocked Gemini service."""

    def test_not_configured(self):
        flow = AssistantFlow(service=None)
        assert not flow.is_configured
        assert asyncio.run(flow.chat([], "oi")).text == ASSISTANT_NOT_CONFIGURED
        assert asyncio.run(flow.read_receipt(b"img", "image/png")) is None

    def test_success_is_audited(self, audit_storage):
        service = MagicMock()
        service.grounded_search = AsyncMock(return_value=Completion(
            text="Rates are up.",
            sources=[GroundingSource(title="News", uri="https://example.com")],
            model_name="gemini-1.5-flash",
        ))
        flow = AssistantFlow(service, AuditLogger(audit_storage))

        completion = asyncio.run(flow.search("interest rates"))
        assert completion.text == "Rates are up."
        service.grounded_search.assert_awaited_once_with("interest rates")

        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.AI_REQUEST_COMPLETED
        assert events[0].details["source_count"] == 1

    def test_failure_becomes_generic_message(self, audit_storage):
        service = MagicMock()
        service.chat = AsyncMock(side_effect=AssistantError("quota exceeded"))
        flow = AssistantFlow(service, AuditLogger(audit_storage))

        completion = asyncio.run(flow.chat([], "oi"))
        assert completion.text == ASSISTANT_UNAVAILABLE

        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.AI_REQUEST_FAILED
        assert "quota exceeded" in events[0].error_message

    def test_analyze_passes_report(self):
        service = MagicMock()
        service.analyze_finances = AsyncMock(return_value=Completion(text="ok"))
        flow = AssistantFlow(service)

        asyncio.run(flow.analyze({"Resumo_Saidas": []}, "Where can I save?"))
        service.analyze_finances.assert_awaited_once_with({"Resumo_Saidas": []}, "Where can I save?")

    def test_unreadable_receipt(self):
        service = MagicMock()
        service.parse_receipt = AsyncMock(side_effect=AssistantError("not json"))
        flow = AssistantFlow(service)
        assert asyncio.run(flow.read_receipt(b"img", "image/png", ["Lazer"])) is None


class TestCreateAppComponents:

    def test_partitioned_by_session(self):
        backend = InMemoryKeyValueStorage()
        ana = create_app_components(
            UserSession(email="ana@example.com"), backend=backend, use_assistant=False,
        )
        bia = create_app_components(
            UserSession(email="bia@example.com"), backend=backend, use_assistant=False,
        )

        asyncio.run(ana.ledger.add_record(
            StorageKeys.INCOMES, Income(description="Salário", amount=Decimal("10")),
        ))

        assert asyncio.run(bia.ledger.list_records(StorageKeys.INCOMES, Income)) == []
        assert len(asyncio.run(ana.ledger.list_records(StorageKeys.INCOMES, Income))) == 1
        stored = json.loads(asyncio.run(backend.get("ana@example.com_incomes")))
        assert stored[0]["descricao"] == "Salário"
        assert not ana.assistant.is_configured

    def test_without_session_uses_raw_backend(self):
        backend = InMemoryKeyValueStorage()
        components = create_app_components(backend=backend, use_assistant=False)
        assert components.storage is backend

    def test_empty_gemini_key_means_not_configured(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "")
        components = create_app_components(backend=InMemoryKeyValueStorage())
        assert not components.assistant.is_configured
        assert asyncio.run(components.assistant.search("x")).text == ASSISTANT_NOT_CONFIGURED
