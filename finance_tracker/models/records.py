"""
Core Data Models for Finance Tracker

These models define the schemas of every record the user keeps:
incomes, expenses, monthly budget lines, debts, remittances, savings
goals and their steps, and the archived reports.

DESIGN DECISION: Field names are English, but every field carries the
alias under which it is stored (descricao, valor, tipoDeGasto, ...).
Collections written by earlier versions of the app stay readable, and
`to_storage()` writes them back in the same shape.

Amounts are non-negative Decimal magnitudes; direction is implied by the
collection a record lives in. Whether an amount is strictly positive is
an entry-time rule checked by the validator, not by these models.
"""

import copy
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """Currency tag carried by every amount. Totals never convert between them."""
    USD = "USD"
    BRL = "BRL"
    CAD = "CAD"
    EUR = "EUR"


class ExpenseType(str, Enum):
    """
    Fixed expenses are pooled and split evenly across service lines;
    variable expenses are attributed to the line their description names.
    """
    FIXED = "Fixo"
    VARIABLE = "Variável"


class Classification(str, Enum):
    ESSENTIAL = "Essencial"
    NON_ESSENTIAL = "Não Essencial"


class GoalStepType(str, Enum):
    CONTRIBUTION = "Aporte"
    WITHDRAWAL = "Retirada"


class DebtStatus(str, Enum):
    REGULAR = "Regular"
    LATE = "Atrasada"
    RENEGOTIATED = "Negociada"
    SETTLED = "Quitada"


class DebtReason(str, Enum):
    FINANCING = "Financiamento"
    LOAN = "Empréstimo"
    CREDIT_CARD = "Cartão de Crédito"
    OTHER = "Outro"


class Recurrence(str, Enum):
    MONTHLY = "Mensal"
    YEARLY = "Anual"
    ONE_OFF = "Única"


# =============================================================================
# HELPERS
# =============================================================================

def parse_amount(value: Any) -> Decimal:
    """
    Turn a stored or typed amount into a Decimal.

    Accepts numbers and numeric strings (a decimal comma is read as a
    decimal point). Blank values become zero. Anything else raises
    ValueError so the record is reported instead of silently zeroed.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip().replace(" ", "")
        if not text:
            return Decimal("0")
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        try:
            return Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Amount is not a number: {value!r}")
    raise ValueError(f"Unsupported amount type: {type(value).__name__}")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def new_record_id() -> str:
    return str(uuid4())


# =============================================================================
# RECORDS
# =============================================================================

class LedgerRecord(BaseModel):
    """Base for every stored record: a generated id and alias-aware I/O."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: str = Field(
        default_factory=new_record_id,
        description="Unique record identifier"
    )

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        """Older collections used numeric timestamps as ids."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v

    def to_storage(self) -> dict:
        """Serialize with the stored (aliased) key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Transaction(LedgerRecord):
    """
    An income or an expense.

    The same shape is used for both; which collection holds the record
    decides whether it adds to or subtracts from the balance.
    """

    entry_date: Optional[date] = Field(
        default=None,
        alias="data",
        description="Date of the transaction"
    )
    description: str = Field(
        default="",
        alias="descricao",
        max_length=200,
        description="Free text; for business records this names the service line"
    )
    amount: Decimal = Field(
        ...,
        alias="valor",
        ge=0,
        description="Non-negative magnitude"
    )
    currency: Currency = Field(default=Currency.USD)
    category: str = Field(
        default="",
        alias="categoria",
        description="Spending category"
    )
    kind: Optional[str] = Field(
        default=None,
        alias="tipo",
        description="Income type (salary, freelance, ...)"
    )
    payment_method: Optional[str] = Field(
        default=None,
        alias="formaDePagamento"
    )
    expense_type: Optional[ExpenseType] = Field(
        default=None,
        alias="tipoDeGasto",
        description="Fixed or variable"
    )
    classification: Optional[Classification] = Field(
        default=None,
        alias="classificacao"
    )
    note: Optional[str] = Field(
        default=None,
        alias="observacao",
        max_length=1000
    )
    goal_id: Optional[str] = Field(
        default=None,
        alias="metaId",
        description="Explicit link to a savings goal; wins over name matching"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator(
        'entry_date', 'kind', 'payment_method', 'expense_type',
        'classification', 'note', 'goal_id',
        mode='before',
    )
    @classmethod
    def blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator('category', mode='before')
    @classmethod
    def category_not_null(cls, v: Any) -> Any:
        return v or ""

    @property
    def is_fixed(self) -> bool:
        return self.expense_type == ExpenseType.FIXED

    @property
    def is_variable(self) -> bool:
        return self.expense_type == ExpenseType.VARIABLE


class Income(Transaction):
    """Money in."""


class Expense(Transaction):
    """Money out. Unless stated otherwise an expense is variable."""

    expense_type: Optional[ExpenseType] = Field(
        default=ExpenseType.VARIABLE,
        alias="tipoDeGasto",
        description="Fixed or variable"
    )


class MonthlyBudgetLine(LedgerRecord):
    """
    A planned recurring expense.

    Only used as a reference: its ideal percentage overrides the built-in
    lexicon when its description or type names a spending category.
    """

    description: str = Field(default="", alias="descricao", max_length=200)
    average_amount: Decimal = Field(
        default=Decimal("0"),
        alias="valorMedio",
        ge=0
    )
    currency: Currency = Field(default=Currency.USD)
    line_type: str = Field(
        default="",
        alias="tipo",
        description="Budget group, e.g. Habitação or Fixo"
    )
    target_amount: Optional[Decimal] = Field(
        default=None,
        alias="limitePretendido",
        ge=0
    )
    ideal_percent: Optional[float] = Field(
        default=None,
        alias="percentualIdeal",
        ge=0,
        le=100,
        description="User-defined ideal share of total spend"
    )
    due_day: Optional[int] = Field(
        default=None,
        alias="vencimento",
        ge=1,
        le=31
    )
    recurrence: Recurrence = Field(default=Recurrence.MONTHLY, alias="recorrencia")

    @field_validator('average_amount', mode='before')
    @classmethod
    def coerce_average(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator('target_amount', 'ideal_percent', 'due_day', mode='before')
    @classmethod
    def blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator('line_type', mode='before')
    @classmethod
    def line_type_not_null(cls, v: Any) -> Any:
        return v or ""


class Debt(LedgerRecord):
    """An installment debt. Tracked on its own, never part of the balance."""

    creditor: str = Field(default="", alias="credor", max_length=200)
    total_amount: Decimal = Field(default=Decimal("0"), alias="valorTotal", ge=0)
    installment_amount: Decimal = Field(default=Decimal("0"), alias="valorParcela", ge=0)
    currency: Currency = Field(default=Currency.USD)
    start_date: Optional[date] = Field(default=None, alias="inicio")
    status: DebtStatus = Field(default=DebtStatus.REGULAR)
    reason: DebtReason = Field(default=DebtReason.FINANCING, alias="motivo")
    installments_total: int = Field(default=0, alias="parcelasTotais", ge=0)
    installments_paid: int = Field(default=0, alias="parcelasPagas", ge=0)

    @field_validator('total_amount', 'installment_amount', mode='before')
    @classmethod
    def coerce_amounts(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator('start_date', mode='before')
    @classmethod
    def blank_date(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator('installments_total', 'installments_paid', mode='before')
    @classmethod
    def blank_count(cls, v: Any) -> Any:
        return _blank_to_none(v) or 0

    @model_validator(mode='after')
    def validate_installments(self) -> 'Debt':
        if self.installments_total and self.installments_paid > self.installments_total:
            raise ValueError("Paid installments cannot exceed total installments")
        return self

    @property
    def remaining_installments(self) -> int:
        return max(0, self.installments_total - self.installments_paid)

    @property
    def outstanding_amount(self) -> Decimal:
        """What is left to pay, by installments when they are known."""
        if self.installments_total:
            return self.installment_amount * self.remaining_installments
        return self.total_amount


class Remittance(LedgerRecord):
    """Money sent abroad. Grouped by calendar year."""

    remittance_date: date = Field(..., alias="data")
    amount: Decimal = Field(..., alias="valor", ge=0)
    currency: Currency = Field(default=Currency.USD)
    destination: str = Field(default="", alias="destino", max_length=200)
    note: Optional[str] = Field(default=None, alias="observacoes", max_length=1000)

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator('note', mode='before')
    @classmethod
    def blank_note(cls, v: Any) -> Any:
        return _blank_to_none(v)


class Goal(LedgerRecord):
    """A named savings goal. `balance` caches the last computed value."""

    name: str = Field(..., min_length=1, max_length=120)
    icon: str = Field(default="🎯")
    balance: Decimal = Field(default=Decimal("0"), alias="saldo")

    @field_validator('balance', mode='before')
    @classmethod
    def coerce_balance(cls, v: Any) -> Decimal:
        return parse_amount(v)


class GoalStep(LedgerRecord):
    """A manual contribution to or withdrawal from a goal."""

    amount: Decimal = Field(..., alias="quanto", ge=0)
    currency: Currency = Field(default=Currency.USD)
    step_date: Optional[date] = Field(default=None, alias="quando")
    method: Optional[str] = Field(
        default=None,
        alias="como",
        description="How or why the money moved"
    )
    monthly_investment: Optional[Decimal] = Field(
        default=None,
        alias="investimentoMensal",
        ge=0
    )
    note: Optional[str] = Field(default=None, alias="observacao", max_length=1000)
    step_type: GoalStepType = Field(default=GoalStepType.CONTRIBUTION, alias="tipo")

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator('step_date', 'method', 'monthly_investment', 'note', mode='before')
    @classmethod
    def blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator('step_type', mode='before')
    @classmethod
    def default_type(cls, v: Any) -> Any:
        return v or GoalStepType.CONTRIBUTION


# =============================================================================
# ARCHIVE
# =============================================================================

PT_BR_MONTHS = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]


class SavedReport(BaseModel):
    """
    A write-once archive of a period's collections.

    Frozen: attributes cannot be reassigned. `data` is a deep copy taken
    at creation time, so later edits to the live collections never leak
    into it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=new_record_id)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    period_label: str = Field(
        ...,
        alias="monthYear",
        description="Display label, e.g. Outubro/2026"
    )
    file_name: str = Field(default="", alias="fileName")
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator('timestamp')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are UTC; aware ones are converted to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @classmethod
    def snapshot(
        cls,
        payload: dict[str, Any],
        file_prefix: str,
        moment: Optional[datetime] = None,
        monthly: bool = True,
    ) -> "SavedReport":
        """Archive `payload` under a period label derived from `moment`."""
        moment = moment or datetime.now(timezone.utc)
        month = PT_BR_MONTHS[moment.month - 1]
        label = f"{month.capitalize()}/{moment.year}"
        if monthly:
            file_name = f"{file_prefix}-{month}-{moment.year}"
        else:
            file_name = f"{file_prefix}-{moment.year}"
        return cls(
            timestamp=moment,
            period_label=label,
            file_name=file_name,
            data=copy.deepcopy(payload),
        )

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserSession(BaseModel):
    """The authenticated identity storage is partitioned by."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    email: str = Field(..., min_length=3, max_length=254)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"Not an email address: {v}")
        return v.lower()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one record before it is saved."""

    record_type: str = Field(
        ...,
        description="Kind of record validated (income, expense, ...)"
    )
    record_id: Optional[str] = None
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool = Field(
        ...,
        description="True when no error-level issue was found"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
