"""Rule-based alerts over budget statuses, spending history, and invoices.

Rules are plain functions registered in :data:`ALERT_RULES`, evaluated in
order against one immutable :class:`AlertContext` snapshot. Each rule is
gated by its :class:`~budget_engine.models.AlertConfiguration` (enabled flag
and optional ``custom_threshold``, a percentage).

Alert ids are deterministic: rule type, scope, and the evaluation month (or
the triggering record for per-record rules). Persisting with
:func:`merge_alerts` therefore never stores the same alert twice, and the
read/dismissed state of an existing alert is never overwritten.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal

from .budget import calculate_budget_status, calculate_overspend_projection
from .logging_setup import get_logger
from .models import (
    DEFAULT_THRESHOLDS,
    AlertConfiguration,
    AlertType,
    BudgetAlert,
    BudgetLimit,
    BudgetStatus,
    Category,
    ImportedInvoice,
    Severity,
    Transaction,
    TransactionType,
    to_money,
)
from .periods import add_months, month_expenses, month_key
from .store import KeyValueStore, Repository

_logger = get_logger("budget_engine.alerts")

UNUSUAL_LOOKBACK_MONTHS = 3
NEW_SUBSCRIPTION_WINDOW_DAYS = 7
HIGH_INVOICE_WINDOW_DAYS = 30

_ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class AlertContext:
    """Everything a rule may look at, computed once per evaluation."""

    transactions: tuple[Transaction, ...]
    monthly_income: Decimal
    as_of: date
    statuses: tuple[BudgetStatus, ...]
    invoices: tuple[ImportedInvoice, ...]
    now: datetime

    @property
    def period(self) -> str:
        return month_key(self.as_of)


type AlertRule = Callable[[AlertContext, AlertConfiguration], list[BudgetAlert]]


def _threshold(config: AlertConfiguration) -> Decimal:
    # A zero or missing override falls back to the rule default.
    value = config.custom_threshold or DEFAULT_THRESHOLDS[config.alert_type]
    return Decimal(str(value))


def _pct(value: float | Decimal) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _scope_label(status: BudgetStatus) -> str:
    if status.category is not None:
        return status.category.value
    if status.card_issuer:
        return status.card_issuer
    return "overall budget"


def _above_average(amount: Decimal, avg: Decimal) -> int:
    return _pct((amount / avg - 1) * 100)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def limit_80_rule(ctx: AlertContext, config: AlertConfiguration) -> list[BudgetAlert]:
    threshold = float(_threshold(config))
    out: list[BudgetAlert] = []
    for status in ctx.statuses:
        if not (threshold <= status.percentage_used < 100) or status.is_over_budget:
            continue
        used = _pct(status.percentage_used)
        out.append(
            BudgetAlert(
                id=f"limit_80_{status.limit_id}_{ctx.period}",
                type=AlertType.LIMIT_80,
                title=f"{_scope_label(status).capitalize()} at {used}%",
                message=f"You have used {used}% of this limit; {status.remaining:.2f} left.",
                severity=Severity.WARNING,
                related_budget_id=status.limit_id,
                related_category=status.category,
                related_card_issuer=status.card_issuer,
                amount=status.spent,
                threshold=status.limit,
                created_at=ctx.now,
            )
        )
    return out


def limit_100_rule(ctx: AlertContext, config: AlertConfiguration) -> list[BudgetAlert]:
    out: list[BudgetAlert] = []
    for status in ctx.statuses:
        if not status.is_over_budget:
            continue
        out.append(
            BudgetAlert(
                id=f"limit_100_{status.limit_id}_{ctx.period}",
                type=AlertType.LIMIT_100,
                title=f"Limit exceeded: {_scope_label(status)}",
                message=(
                    f"You are {abs(status.remaining):.2f} over the limit "
                    f"({_pct(status.percentage_used)}%)."
                ),
                severity=Severity.DANGER,
                related_budget_id=status.limit_id,
                related_category=status.category,
                related_card_issuer=status.card_issuer,
                amount=status.spent,
                threshold=status.limit,
                created_at=ctx.now,
            )
        )
    return out


def _category_totals(transactions: Iterable[Transaction]) -> dict[Category, Decimal]:
    totals: dict[Category, Decimal] = {}
    for t in transactions:
        totals[t.category] = totals.get(t.category, _ZERO) + t.amount
    return totals


def unusual_spending_rule(ctx: AlertContext, config: AlertConfiguration) -> list[BudgetAlert]:
    """Compare each category's month total with its trailing three-month mean."""

    threshold = _threshold(config)
    history: dict[Category, Decimal] = {}
    for offset in range(1, UNUSUAL_LOOKBACK_MONTHS + 1):
        past = month_expenses(ctx.transactions, add_months(ctx.as_of, -offset))
        for category, amount in _category_totals(past).items():
            history[category] = history.get(category, _ZERO) + amount

    out: list[BudgetAlert] = []
    current = _category_totals(month_expenses(ctx.transactions, ctx.as_of))
    for category, total in current.items():
        avg = history.get(category, _ZERO) / UNUSUAL_LOOKBACK_MONTHS
        if avg <= 0 or total <= avg * threshold / 100:
            continue
        out.append(
            BudgetAlert(
                id=f"unusual_{category.value}_{ctx.period}",
                type=AlertType.UNUSUAL_SPENDING,
                title=f"Unusual spending: {category.value}",
                message=(
                    f"You spent {total:.2f} on {category.value}, "
                    f"{_above_average(total, avg)}% above your average."
                ),
                severity=Severity.WARNING,
                related_category=category,
                amount=total,
                threshold=to_money(avg),
                created_at=ctx.now,
            )
        )
    return out


def new_subscription_rule(ctx: AlertContext, config: AlertConfiguration) -> list[BudgetAlert]:
    """Flag a recent subscription charge well above the usual subscription amount."""

    factor = _threshold(config) / 100
    subscriptions = [
        t
        for t in ctx.transactions
        if t.type == TransactionType.EXPENSE
        and t.category == Category.SUBSCRIPTIONS
        and not t.is_projected
    ]
    if not subscriptions:
        return []
    avg = sum((t.amount for t in subscriptions), _ZERO) / len(subscriptions)

    out: list[BudgetAlert] = []
    for sub in subscriptions:
        if abs((ctx.as_of - sub.date).days) > NEW_SUBSCRIPTION_WINDOW_DAYS:
            continue
        if sub.amount <= avg * factor:
            continue
        out.append(
            BudgetAlert(
                id=f"new_sub_{sub.id}",
                type=AlertType.NEW_SUBSCRIPTION,
                title="New subscription detected",
                message=(
                    f"{sub.description} ({sub.amount:.2f}) is above your average "
                    f"subscription amount."
                ),
                severity=Severity.INFO,
                related_category=Category.SUBSCRIPTIONS,
                amount=sub.amount,
                threshold=to_money(avg),
                created_at=ctx.now,
            )
        )
    return out


def high_invoice_rule(ctx: AlertContext, config: AlertConfiguration) -> list[BudgetAlert]:
    recent = [
        inv
        for inv in ctx.invoices
        if abs((ctx.as_of - inv.imported_at.date()).days) <= HIGH_INVOICE_WINDOW_DAYS
    ]
    if not recent:
        return []
    threshold = _threshold(config)
    avg = sum((inv.total_amount for inv in ctx.invoices), _ZERO) / len(ctx.invoices)

    out: list[BudgetAlert] = []
    for inv in recent:
        if avg <= 0 or inv.total_amount <= avg * threshold / 100:
            continue
        out.append(
            BudgetAlert(
                id=f"high_invoice_{inv.id}",
                type=AlertType.HIGH_INVOICE,
                title=f"High invoice: {inv.issuer or 'card'}",
                message=(
                    f"Invoice of {inv.total_amount:.2f} is "
                    f"{_above_average(inv.total_amount, avg)}% above your average."
                ),
                severity=Severity.WARNING,
                related_card_issuer=inv.issuer,
                amount=inv.total_amount,
                threshold=to_money(avg),
                created_at=ctx.now,
            )
        )
    return out


def overspend_projection_rule(
    ctx: AlertContext, config: AlertConfiguration
) -> list[BudgetAlert]:
    forecast = calculate_overspend_projection(ctx.transactions, ctx.monthly_income, ctx.as_of)
    if not forecast.will_overspend or not forecast.days_remaining:
        return []
    assert forecast.recommended_daily_limit is not None and forecast.projected_spend is not None
    return [
        BudgetAlert(
            id=f"overspend_proj_{ctx.period}",
            type=AlertType.OVERSPEND_PROJECTION,
            title="Projected overspend",
            message=(
                f"At this pace you will exceed your income in "
                f"{forecast.days_until_overspend} days. "
                f"Daily limit: {to_money(forecast.recommended_daily_limit):.2f}."
            ),
            severity=Severity.DANGER,
            related_category=forecast.category_at_risk,
            amount=to_money(forecast.projected_spend),
            threshold=ctx.monthly_income,
            created_at=ctx.now,
        )
    ]


# Evaluation order is the order of alerts in the output.
ALERT_RULES: tuple[tuple[AlertType, AlertRule], ...] = (
    (AlertType.LIMIT_80, limit_80_rule),
    (AlertType.LIMIT_100, limit_100_rule),
    (AlertType.UNUSUAL_SPENDING, unusual_spending_rule),
    (AlertType.NEW_SUBSCRIPTION, new_subscription_rule),
    (AlertType.HIGH_INVOICE, high_invoice_rule),
    (AlertType.OVERSPEND_PROJECTION, overspend_projection_rule),
)


# ---------------------------------------------------------------------------
# Generation and merge
# ---------------------------------------------------------------------------


def _configs_by_type(
    configs: Iterable[AlertConfiguration],
) -> Mapping[AlertType, AlertConfiguration]:
    by_type: dict[AlertType, AlertConfiguration] = {}
    for c in configs:
        by_type.setdefault(c.alert_type, c)
    return by_type


def generate_alerts(
    transactions: Iterable[Transaction],
    monthly_income: Decimal | int | float | str,
    as_of: date,
    configs: Iterable[AlertConfiguration],
    *,
    limits: Iterable[BudgetLimit] = (),
    invoices: Iterable[ImportedInvoice] = (),
    now: datetime | None = None,
) -> list[BudgetAlert]:
    """Evaluate every enabled rule for ``as_of``'s month.

    A rule without a configuration entry does not fire. Nothing is persisted
    here; see :meth:`AlertEngine.process_and_save`.
    """

    items = tuple(transactions)
    income = monthly_income if isinstance(monthly_income, Decimal) else to_money(monthly_income)
    ctx = AlertContext(
        transactions=items,
        monthly_income=income,
        as_of=as_of,
        statuses=tuple(calculate_budget_status(items, limits, as_of)),
        invoices=tuple(invoices),
        now=now or datetime.now(UTC),
    )

    by_type = _configs_by_type(configs)
    alerts: list[BudgetAlert] = []
    for alert_type, rule in ALERT_RULES:
        config = by_type.get(alert_type)
        if config is None or not config.is_enabled:
            continue
        fired = rule(ctx, config)
        if fired:
            _logger.debug("alerts:fired type=%s count=%d", alert_type.value, len(fired))
        alerts.extend(fired)
    return alerts


def merge_alerts(
    existing: Sequence[BudgetAlert], new: Iterable[BudgetAlert]
) -> list[BudgetAlert]:
    """Append alerts whose id is not stored yet; existing entries win."""

    seen = {a.id for a in existing}
    added: list[BudgetAlert] = []
    for alert in new:
        if alert.id in seen:
            continue
        seen.add(alert.id)
        added.append(alert)
    return [*existing, *added]


# ---------------------------------------------------------------------------
# Store-backed engine
# ---------------------------------------------------------------------------


class AlertEngine:
    """Generate, persist, and manage alerts against a key-value store."""

    def __init__(
        self, store: KeyValueStore, *, clock: Callable[[], datetime] | None = None
    ) -> None:
        self.repository = (
            Repository(store, clock=clock) if clock is not None else Repository(store)
        )
        self._clock = clock

    def generate(
        self,
        transactions: Iterable[Transaction],
        monthly_income: Decimal | int | float | str,
        as_of: date,
    ) -> list[BudgetAlert]:
        repo = self.repository
        return generate_alerts(
            transactions,
            monthly_income,
            as_of,
            repo.alert_configurations(),
            limits=repo.budget_limits(),
            invoices=repo.imported_invoices(),
            now=self._clock() if self._clock is not None else None,
        )

    def process_and_save(
        self,
        transactions: Iterable[Transaction],
        monthly_income: Decimal | int | float | str,
        as_of: date,
    ) -> list[BudgetAlert]:
        """Generate alerts, merge them into the stored set, and return the result."""

        existing = self.repository.alerts()
        merged = merge_alerts(existing, self.generate(transactions, monthly_income, as_of))
        self.repository.save_alerts(merged)
        _logger.info(
            "alerts:saved as_of=%s added=%d total=%d",
            as_of,
            len(merged) - len(existing),
            len(merged),
        )
        return merged

    def mark_as_read(self, alert_id: str) -> list[BudgetAlert]:
        return self.repository.update_alert(alert_id, is_read=True)

    def dismiss(self, alert_id: str) -> list[BudgetAlert]:
        return self.repository.update_alert(alert_id, is_dismissed=True)

    def clear_old_alerts(self, days_old: int = 30) -> list[BudgetAlert]:
        return self.repository.prune_alerts(days_old)

    def unread_alerts(self) -> list[BudgetAlert]:
        return [a for a in self.repository.alerts() if not a.is_read and not a.is_dismissed]

    def active_alerts(self) -> list[BudgetAlert]:
        return [a for a in self.repository.alerts() if not a.is_dismissed]


__all__ = [
    "ALERT_RULES",
    "AlertContext",
    "AlertEngine",
    "AlertRule",
    "generate_alerts",
    "merge_alerts",
]
