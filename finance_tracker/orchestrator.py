"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger entries (validate -> save -> audit)
2. Reports (load collections -> aggregate -> dashboards; archive-and-reset)
3. Assistant (prompt -> Gemini -> answer, or a generic failure message)

DESIGN DECISION: Every flow works on a CollectionRepository bound to ONE
storage view. With an active session that view is partitioned by the
user's email, so flows never see another user's keys. Without a session
the raw backend is used unnamespaced.

The orchestrator enforces the boundaries:
- Nothing is saved without passing validation
- Aggregation only ever reads records, never writes them
- Every mutation is audited
"""

from datetime import date, datetime
from typing import NamedTuple, Optional, Sequence
from uuid import UUID

import structlog

from finance_tracker.agents import (
    AssistantError,
    ChatMessage,
    Completion,
    GenerativeAIService,
    ReceiptExtraction,
)
from finance_tracker.analytics import (
    build_category_distribution,
    build_classification_profile,
    build_profitability_report,
    build_report_snapshot,
    compute_balance,
    compute_goal_balance,
    is_goal_contribution,
    margin_advice,
    normalize_key,
    refresh_goal,
    summarize_by_year,
    summarize_debts,
)
from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import AnalysisSettings, get_settings
from finance_tracker.models.records import (
    Debt,
    Expense,
    Goal,
    GoalStep,
    Income,
    LedgerRecord,
    MonthlyBudgetLine,
    Remittance,
    SavedReport,
    UserSession,
    ValidationResult,
)
from finance_tracker.models.reports import (
    DebtSummary,
    FinanceDashboard,
    GoalBalance,
    RemittanceSummary,
)
from finance_tracker.services.storage import (
    AuditStorageInterface,
    CollectionRepository,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
    InMemoryKeyValueStorage,
    KeyValueStorage,
    StorageKeys,
    open_session_storage,
)
from finance_tracker.validation import RecordValidator


logger = structlog.get_logger(__name__)

ASSISTANT_UNAVAILABLE = "Sorry, the assistant is unavailable right now. Please try again later."
ASSISTANT_NOT_CONFIGURED = "The assistant isn't configured. Add a Gemini API key to enable it."


class RecordValidationError(Exception):
    """A record was rejected by entry validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"{result.record_type} rejected: {messages}")


class LedgerScope(NamedTuple):
    """The collections one dashboard reads, archives and resets."""

    name: str
    incomes_key: str
    expenses_key: str
    budget_key: str
    history_key: str
    file_prefix: str


PERSONAL = LedgerScope(
    name="personal",
    incomes_key=StorageKeys.INCOMES,
    expenses_key=StorageKeys.EXPENSES,
    budget_key=StorageKeys.MONTHLY_EXPENSES,
    history_key=StorageKeys.PERSONAL_HISTORY,
    file_prefix="controle-financeiro-pessoal",
)

BUSINESS = LedgerScope(
    name="business",
    incomes_key=StorageKeys.BUSINESS_INCOMES,
    expenses_key=StorageKeys.BUSINESS_EXPENSES,
    budget_key=StorageKeys.BUSINESS_MONTHLY_EXPENSES,
    history_key=StorageKeys.BUSINESS_HISTORY,
    file_prefix="business-financeiro",
)

SCOPES = {scope.name: scope for scope in (PERSONAL, BUSINESS)}


class LedgerFlow:
    """
    Orchestrates record entry.

    Flow:
    1. Validate the record against its collection
    2. Reject (audited) or save it
    3. Audit the mutation
    """

    def __init__(
        self,
        repository: CollectionRepository,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger

    async def _validate(
        self,
        key: str,
        record: LedgerRecord,
        correlation_id: UUID,
    ) -> tuple[list[LedgerRecord], ValidationResult]:
        existing = await self._repository.load(key, type(record))
        result = self._validator.validate(record, existing)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    record_type=result.record_type,
                    issues=[issue.model_dump() for issue in result.issues],
                    correlation_id=correlation_id,
                )
            raise RecordValidationError(result)
        return existing, result

    def summarize_validation(self, result: ValidationResult) -> str:
        return self._validator.get_user_friendly_summary(result)

    async def list_records(self, key: str, model: type[LedgerRecord]) -> list:
        return await self._repository.load(key, model)

    async def known_categories(
        self,
        expenses_key: str = StorageKeys.EXPENSES,
        settings: Optional[AnalysisSettings] = None,
    ) -> list[str]:
        """Expense categories in use plus the ideal-percentage lexicon, one per name."""
        settings = settings or get_settings().analysis
        expenses = await self._repository.load(expenses_key, Expense)
        names: dict[str, str] = {}
        for expense in expenses:
            if expense.category:
                names.setdefault(normalize_key(expense.category), expense.category)
        for name in settings.ideal_percentages:
            names.setdefault(normalize_key(name), name.capitalize())
        return sorted(names.values(), key=str.casefold)

    async def add_record(
        self,
        key: str,
        record: LedgerRecord,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Validate and append a record.

        Returns the validation result so warnings can be shown.

        Raises:
            RecordValidationError: If validation found an error
        """
        correlation_id = correlation_id or create_correlation_id()
        existing, result = await self._validate(key, record, correlation_id)

        await self._repository.save(key, [*existing, record])

        if self._audit_logger:
            await self._audit_logger.log_record_created(
                collection=key,
                record_id=record.id,
                summary=_summarize(record),
                correlation_id=correlation_id,
            )
        return result

    async def update_record(
        self,
        key: str,
        record: LedgerRecord,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Validate and replace the record with the same id.

        Raises:
            RecordValidationError: If validation found an error
            NotFoundError: If no record has that id
        """
        correlation_id = correlation_id or create_correlation_id()
        _, result = await self._validate(key, record, correlation_id)

        await self._repository.update(key, type(record), record)

        if self._audit_logger:
            await self._audit_logger.log_record_updated(
                collection=key,
                record_id=record.id,
                correlation_id=correlation_id,
            )
        return result

    async def delete_record(
        self,
        key: str,
        model: type[LedgerRecord],
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        removed = await self._repository.remove(key, model, record_id)
        if removed and self._audit_logger:
            await self._audit_logger.log_record_deleted(
                collection=key,
                record_id=record_id,
                correlation_id=correlation_id,
            )
        return removed

    async def add_goal_step(
        self,
        goal: Goal,
        step: GoalStep,
        correlation_id: Optional[UUID] = None,
    ) -> ValidationResult:
        return await self.add_record(StorageKeys.goal_steps(goal.id), step, correlation_id)

    async def rename_goal(
        self,
        goal: Goal,
        name: str,
        icon: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        """
        Rename a goal without orphaning its contributions.

        Entries that only reached the goal through its old name are
        linked to it by id before the name changes.

        Raises:
            ValidationError: If the new name is blank
            NotFoundError: If the goal is not stored
        """
        correlation_id = correlation_id or create_correlation_id()
        renamed = Goal.model_validate({
            **goal.model_dump(),
            "name": name,
            "icon": icon or goal.icon,
        })

        for key, model in ((StorageKeys.EXPENSES, Expense), (StorageKeys.INCOMES, Income)):
            records = await self._repository.load(key, model)
            relinked = []
            for record in records:
                if not record.goal_id and is_goal_contribution(record, goal):
                    record = record.model_copy(update={"goal_id": goal.id})
                    if self._audit_logger:
                        await self._audit_logger.log_record_updated(
                            collection=key,
                            record_id=record.id,
                            correlation_id=correlation_id,
                        )
                relinked.append(record)
            if relinked != records:
                await self._repository.save(key, relinked)

        await self.update_record(StorageKeys.GOALS, renamed, correlation_id)
        return renamed

    async def delete_goal(
        self,
        goal_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a goal together with its steps."""
        removed = await self.delete_record(StorageKeys.GOALS, Goal, goal_id, correlation_id)
        if removed:
            await self._repository.storage.delete(StorageKeys.goal_steps(goal_id))
        return removed


class ReportFlow:
    """
    Orchestrates dashboards and the monthly archive.

    Aggregation is read-only. The one exception is the cached goal
    balance, written back so goal lists show it without recomputing.
    """

    def __init__(
        self,
        repository: CollectionRepository,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AnalysisSettings] = None,
    ):
        self._repository = repository
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().analysis

    async def _load_scope(self, scope: LedgerScope):
        incomes = await self._repository.load(scope.incomes_key, Income)
        expenses = await self._repository.load(scope.expenses_key, Expense)
        budget = await self._repository.load(scope.budget_key, MonthlyBudgetLine)
        return incomes, expenses, budget

    async def dashboard(self, scope: LedgerScope = PERSONAL) -> FinanceDashboard:
        """Balance, category adherence and (for business) profitability."""
        incomes, expenses, budget = await self._load_scope(scope)
        history = await self._repository.list_history(scope.history_key)

        balance = compute_balance(incomes, expenses)
        profitability = None
        advice = None
        if scope.name == BUSINESS.name:
            profitability = build_profitability_report(incomes, expenses, self._settings)
            advice = margin_advice(balance.margin, self._settings)

        return FinanceDashboard(
            scope=scope.name,
            balance=balance,
            distribution=build_category_distribution(
                expenses, budget, history, self._settings
            ),
            classification=build_classification_profile(expenses),
            profitability=profitability,
            advice=advice,
        )

    async def report_payload(self, scope: LedgerScope = PERSONAL) -> dict:
        """The snapshot that would be archived right now."""
        incomes, expenses, budget = await self._load_scope(scope)
        return build_report_snapshot(incomes, expenses, budget)

    async def archive_period(
        self,
        scope: LedgerScope = PERSONAL,
        moment: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SavedReport:
        """Archive this period's incomes and expenses, then empty them."""
        correlation_id = correlation_id or create_correlation_id()
        payload = await self.report_payload(scope)
        cleared = [scope.incomes_key, scope.expenses_key]

        report = await self._repository.archive_and_reset(
            history_key=scope.history_key,
            payload=payload,
            file_prefix=scope.file_prefix,
            clear_keys=cleared,
            moment=moment,
        )

        if self._audit_logger:
            await self._audit_logger.log_report_archived(
                report_id=report.id,
                period_label=report.period_label,
                history_key=scope.history_key,
                cleared=cleared,
                correlation_id=correlation_id,
            )
        return report

    async def history(self, scope: LedgerScope = PERSONAL) -> list[SavedReport]:
        return await self._repository.list_history(scope.history_key)

    async def delete_report(
        self,
        report_id: str,
        scope: LedgerScope = PERSONAL,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        removed = await self._repository.delete_report(scope.history_key, report_id)
        if removed and self._audit_logger:
            await self._audit_logger.log_report_deleted(
                report_id=report_id,
                history_key=scope.history_key,
                correlation_id=correlation_id,
            )
        return removed

    async def goal_balances(self) -> list[GoalBalance]:
        """Recompute every goal's balance and cache it on the goal."""
        goals = await self._repository.load(StorageKeys.GOALS, Goal)
        transactions = [
            *await self._repository.load(StorageKeys.EXPENSES, Expense),
            *await self._repository.load(StorageKeys.INCOMES, Income),
        ]

        balances = []
        refreshed = []
        for goal in goals:
            steps = await self._repository.load(StorageKeys.goal_steps(goal.id), GoalStep)
            balance = compute_goal_balance(goal, steps, transactions, self._settings)
            balances.append(balance)
            refreshed.append(refresh_goal(goal, balance))

        if refreshed != goals:
            await self._repository.save(StorageKeys.GOALS, refreshed)
        return balances

    async def remittance_summary(self, today: Optional[date] = None) -> RemittanceSummary:
        remittances = await self._repository.load(StorageKeys.REMITTANCES, Remittance)
        return summarize_by_year(remittances, today)

    async def debt_summary(self) -> DebtSummary:
        return summarize_debts(await self._repository.load(StorageKeys.DEBTS, Debt))


class AssistantFlow:
    """
    Orchestrates assistant requests.

    Failures never propagate to the UI: they are audited and replaced by
    a generic message. A parsed receipt is only a suggestion for the
    entry form; nothing is saved here.
    """

    def __init__(
        self,
        service: Optional[GenerativeAIService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._service = service
        self._audit_logger = audit_logger

    @property
    def is_configured(self) -> bool:
        return self._service is not None

    async def _run(self, operation: str, call) -> Completion:
        if self._service is None:
            return Completion(text=ASSISTANT_NOT_CONFIGURED)

        correlation_id = create_correlation_id()
        try:
            completion = await call()
        except AssistantError as e:
            if self._audit_logger:
                await self._audit_logger.log_ai_failed(
                    operation=operation,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return Completion(text=ASSISTANT_UNAVAILABLE)

        if self._audit_logger:
            await self._audit_logger.log_ai_completed(
                operation=operation,
                model_name=completion.model_name or "",
                source_count=len(completion.sources),
                correlation_id=correlation_id,
            )
        return completion

    async def chat(self, history: Sequence[ChatMessage], message: str) -> Completion:
        return await self._run("chat", lambda: self._service.chat(history, message))

    async def ask_complex(self, question: str) -> Completion:
        return await self._run("complex_query", lambda: self._service.complex_query(question))

    async def search(self, query: str) -> Completion:
        return await self._run("grounded_search", lambda: self._service.grounded_search(query))

    async def analyze(self, report: dict, question: Optional[str] = None) -> Completion:
        return await self._run(
            "analyze_finances",
            lambda: self._service.analyze_finances(report, question),
        )

    async def read_receipt(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: Sequence[str] = (),
    ) -> Optional[ReceiptExtraction]:
        """Suggested entry fields, or None when the receipt could not be read."""
        if self._service is None:
            return None
        try:
            return await self._service.parse_receipt(image_bytes, mime_type, categories)
        except AssistantError as e:
            if self._audit_logger:
                await self._audit_logger.log_ai_failed(
                    operation="parse_receipt",
                    error_message=str(e),
                )
            return None


class AppComponents(NamedTuple):
    ledger: LedgerFlow
    reports: ReportFlow
    assistant: AssistantFlow
    storage: KeyValueStorage


def _summarize(record: LedgerRecord) -> str:
    parts = []
    for attr in ("description", "destination", "creditor", "name"):
        value = getattr(record, attr, None)
        if value:
            parts.append(str(value))
            break
    amount = getattr(record, "amount", None)
    if amount is not None:
        parts.append(str(amount))
    return " - ".join(parts) or record.id


def create_backend(
    use_sheets: Optional[bool] = None,
) -> tuple[KeyValueStorage, Optional[AuditStorageInterface]]:
    """
    The configured key/value backend and its audit store.

    Falls back to in-memory storage when Google Sheets is requested but
    not configured.
    """
    if use_sheets is None:
        use_sheets = get_settings().app.storage_backend == "sheets"

    if use_sheets:
        try:
            client = GoogleSheetsClient()
            return GoogleSheetsKeyValueStorage(client), GoogleSheetsAuditStorage(client)
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))

    return InMemoryKeyValueStorage(), None


def create_app_components(
    session: Optional[UserSession] = None,
    backend: Optional[KeyValueStorage] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    use_assistant: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        session: Active user session; partitions storage by its email
        backend: Key/value backend. Defaults to the configured one.
        audit_storage: Where audit events persist, besides the local log
        use_assistant: Whether to set up the Gemini assistant
    """
    if backend is None:
        backend, default_audit = create_backend()
        audit_storage = audit_storage or default_audit

    storage = open_session_storage(backend, session)
    repository = CollectionRepository(storage)
    audit_logger = AuditLogger(audit_storage, session.email if session else None)

    service = None
    if use_assistant:
        try:
            service = GenerativeAIService()
        except Exception as e:
            # Assistant not configured - the rest of the app still works
            logger.warning("assistant_not_configured", error=str(e))

    return AppComponents(
        ledger=LedgerFlow(repository, audit_logger=audit_logger),
        reports=ReportFlow(repository, audit_logger=audit_logger),
        assistant=AssistantFlow(service, audit_logger=audit_logger),
        storage=storage,
    )
