"""Data models for ``budget_engine``.

Two families of types live here:

- Input and persisted entities (transactions, budget limits, alerts, alert
  configurations, imported invoices, savings goals) are Pydantic models. They
  are validated once at the boundary (JSON documents from the store or from a
  caller) and are immutable afterwards; state transitions produce copies via
  ``model_copy``.
- Computed results (budget statuses, overspend projections, duplicate groups,
  adjustment suggestions) are frozen ``dataclass`` values. They are derived
  fresh on every call and never persisted.

Money is ``Decimal`` quantized to two places. Calendar values are
``datetime.date``; ISO strings carrying a time component are truncated to
their date part so that a ``"...T23:30:00-03:00"`` timestamp never drifts into
the next day.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .logging_setup import get_logger

_logger = get_logger("budget_engine.models")

_CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class Category(StrEnum):
    FOOD = "food"
    TRANSPORT = "transport"
    HOUSING = "housing"
    UTILITIES = "utilities"
    ENTERTAINMENT = "entertainment"
    HEALTH = "health"
    SHOPPING = "shopping"
    SUBSCRIPTIONS = "subscriptions"
    EDUCATION = "education"
    SAVINGS = "savings"
    SALARY = "salary"
    OTHER = "other"


class AlertType(StrEnum):
    LIMIT_80 = "limit_80"
    LIMIT_100 = "limit_100"
    UNUSUAL_SPENDING = "unusual_spending"
    NEW_SUBSCRIPTION = "new_subscription"
    HIGH_INVOICE = "high_invoice"
    OVERSPEND_PROJECTION = "overspend_projection"


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------


def to_money(raw: Any) -> Decimal:
    """Return ``raw`` as a two-place ``Decimal`` (half-up rounding)."""

    if isinstance(raw, Decimal):
        d = raw
    elif isinstance(raw, float):
        # Go through ``str`` so 0.1 becomes Decimal("0.1"), not its binary expansion.
        d = Decimal(str(raw))
    else:
        d = Decimal(raw)
    return d.quantize(_CENT, rounding=ROUND_HALF_UP)


def _date_part(raw: Any) -> Any:
    """Reduce datetimes and ISO timestamp strings to their calendar date."""

    if isinstance(raw, dt.datetime):
        return raw.date()
    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return None
        # Accept 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM:SS...' and 'YYYY-MM-DD HH:MM:SS'.
        return s.split()[0].split("T", 1)[0]
    return raw


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """A single income or expense entry.

    ``payment_date`` is the cash-flow date; when present every period and
    bucketing computation uses it instead of ``date`` (the purchase date).
    ``is_projected`` is true only for synthetic occurrences produced by
    :func:`budget_engine.recurrence.project_recurring_transactions`.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    id: str = Field(min_length=1)
    description: str
    amount: Decimal = Field(ge=0)
    date: dt.date
    payment_date: dt.date | None = None
    type: TransactionType
    category: Category = Category.OTHER
    issuer: str | None = None
    credit_card_issuer: str | None = None
    is_recurring: bool = False
    recurring_end_date: dt.date | None = None
    is_projected: bool = False
    tags: frozenset[str] = frozenset()
    is_duplicate: bool = False
    duplicate_of: str | None = None
    ignored_reason: str | None = None

    @field_validator("date", "payment_date", "recurring_end_date", mode="before")
    @classmethod
    def _calendar_date(cls, v: Any) -> Any:
        return _date_part(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_to_cents(cls, v: Any) -> Any:
        if isinstance(v, bool) or v is None:
            return v
        try:
            return to_money(v)
        except (ArithmeticError, TypeError, ValueError):
            # Let pydantic report the original value as invalid.
            return v

    @field_validator("issuer", "credit_card_issuer", "duplicate_of", "ignored_reason")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        return v if v else None


def parse_transactions(records: Iterable[Mapping[str, Any]]) -> list[Transaction]:
    """Validate raw transaction records one by one.

    A record that fails validation (missing fields, unparseable dates or
    amounts) is logged and skipped; it never aborts the batch.
    """

    out: list[Transaction] = []
    for pos, record in enumerate(records):
        try:
            out.append(Transaction.model_validate(record))
        except ValidationError as exc:
            _logger.warning(
                "transactions:skip_invalid pos=%d id=%r errors=%d",
                pos,
                record.get("id") if isinstance(record, Mapping) else None,
                exc.error_count(),
            )
    return out


# ---------------------------------------------------------------------------
# Budget limits (discriminated on ``type``)
# ---------------------------------------------------------------------------


class _LimitBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    id: str = Field(min_length=1)
    # A zero limit would make every percentage infinite; reject it at the boundary.
    monthly_limit: Decimal = Field(gt=0)
    is_active: bool = True
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class GlobalLimit(_LimitBase):
    type: Literal["global"] = "global"


class CategoryLimit(_LimitBase):
    type: Literal["category"] = "category"
    category: Category


class CardLimit(_LimitBase):
    type: Literal["card"] = "card"
    card_issuer: str = Field(min_length=1)


BudgetLimit = Annotated[GlobalLimit | CategoryLimit | CardLimit, Field(discriminator="type")]
"""A monthly ceiling scoped to all spend, one category, or one card issuer."""

BUDGET_LIMIT_ADAPTER: TypeAdapter[GlobalLimit | CategoryLimit | CardLimit] = TypeAdapter(
    BudgetLimit
)


# ---------------------------------------------------------------------------
# Alerts and alert configuration
# ---------------------------------------------------------------------------


class BudgetAlert(BaseModel):
    """A persisted notification.

    ``id`` is derived from rule type, scope and period so that re-running the
    engine never stores the same alert twice.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    type: AlertType
    title: str
    message: str
    severity: Severity
    related_budget_id: str | None = None
    related_category: Category | None = None
    related_card_issuer: str | None = None
    amount: Decimal | None = None
    threshold: Decimal | None = None
    created_at: dt.datetime
    is_read: bool = False
    is_dismissed: bool = False


class AlertConfiguration(BaseModel):
    """One row per rule type: on/off toggle and an optional custom threshold."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    alert_type: AlertType
    is_enabled: bool = True
    custom_threshold: float | None = None
    notification_method: Literal["in_app", "email", "push"] = "in_app"
    updated_at: dt.datetime | None = None


# Percent thresholds used when a configuration carries no usable override.
DEFAULT_THRESHOLDS: Mapping[AlertType, float | None] = {
    AlertType.LIMIT_80: 80.0,
    AlertType.LIMIT_100: 100.0,
    AlertType.UNUSUAL_SPENDING: 150.0,
    AlertType.NEW_SUBSCRIPTION: 120.0,
    AlertType.HIGH_INVOICE: 120.0,
    AlertType.OVERSPEND_PROJECTION: None,
}


def default_alert_configurations() -> list[AlertConfiguration]:
    """Return the documented default configuration set (every rule enabled)."""

    return [
        AlertConfiguration(
            id=alert_type.value,
            alert_type=alert_type,
            is_enabled=True,
            custom_threshold=DEFAULT_THRESHOLDS[alert_type],
        )
        for alert_type in AlertType
    ]


# ---------------------------------------------------------------------------
# Collaborator data
# ---------------------------------------------------------------------------


class ImportedInvoice(BaseModel):
    """A credit-card invoice recorded by the import collaborator."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    issuer: str | None = None
    due_date: dt.date | None = None
    total_amount: Decimal = Field(ge=0)
    transaction_count: int = 0
    imported_at: dt.datetime
    fingerprint: str | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_due_date(cls, v: Any) -> Any:
        # Importers write placeholders such as "no-date" when the PDF lacks one.
        v = _date_part(v)
        if isinstance(v, str):
            try:
                return dt.date.fromisoformat(v)
            except ValueError:
                return None
        return v


class SavingsGoal(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    monthly_target: Decimal = Field(default=Decimal("0"), ge=0)
    percentage_of_income: float | None = Field(default=None, ge=0, le=100)
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


# ---------------------------------------------------------------------------
# Computed results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BudgetStatus:
    """Consumption of one active limit in the evaluated month."""

    limit_id: str
    limit_type: Literal["global", "category", "card"]
    category: Category | None
    card_issuer: str | None
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    percentage_used: float
    is_over_budget: bool
    projected_spend: Decimal
    projected_percentage: float
    will_exceed: bool


@dataclass(frozen=True, slots=True)
class OverspendProjection:
    """Month-end forecast of total expenses against monthly income.

    When ``will_overspend`` is false the remaining fields stay ``None``.
    """

    will_overspend: bool
    projected_spend: Decimal | None = None
    projected_overspend_date: dt.date | None = None
    projected_overspend_amount: Decimal | None = None
    category_at_risk: Category | None = None
    days_until_overspend: int | None = None
    days_remaining: int | None = None
    recommended_daily_limit: Decimal | None = None


@dataclass(frozen=True, slots=True)
class DuplicateCandidate:
    transaction: Transaction
    similarity: float
    reasons: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """An ``original`` and its probable duplicates, most similar first."""

    original: Transaction
    duplicates: tuple[DuplicateCandidate, ...]


@dataclass(frozen=True, slots=True)
class BudgetAdjustmentSuggestion:
    category: Category
    current_limit: Decimal
    suggested_limit: Decimal
    reduction: Decimal
    rationale: str


@dataclass(frozen=True, slots=True)
class SavingsFeasibility:
    is_feasible: bool
    target: Decimal
    available: Decimal
    shortfall: Decimal | None
    message: str


__all__ = [
    "AlertConfiguration",
    "AlertType",
    "BUDGET_LIMIT_ADAPTER",
    "BudgetAdjustmentSuggestion",
    "BudgetAlert",
    "BudgetLimit",
    "BudgetStatus",
    "CardLimit",
    "Category",
    "CategoryLimit",
    "DEFAULT_THRESHOLDS",
    "DuplicateCandidate",
    "DuplicateGroup",
    "GlobalLimit",
    "ImportedInvoice",
    "OverspendProjection",
    "SavingsFeasibility",
    "SavingsGoal",
    "Severity",
    "Transaction",
    "TransactionType",
    "default_alert_configurations",
    "parse_transactions",
    "to_money",
]
