"""Budget consumption, pro-rata forecasts, and adjustment suggestions.

Every function here is a pure computation over a transaction snapshot (real
transactions, optionally merged with the month's projections) and an explicit
``as_of`` date. Nothing reads the clock except where ``as_of`` is optional and
omitted.

Pro-rata forecast
-----------------
``days_passed`` is the day-of-month of ``as_of``; the month-end total is
``spent + spent / max(1, days_passed) * days_remaining``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, assert_never

from .logging_setup import get_logger
from .models import (
    BudgetAdjustmentSuggestion,
    BudgetLimit,
    BudgetStatus,
    CardLimit,
    Category,
    CategoryLimit,
    GlobalLimit,
    OverspendProjection,
    SavingsFeasibility,
    SavingsGoal,
    Transaction,
    to_money,
)
from .periods import add_months, days_in_month, month_expenses

_logger = get_logger("budget_engine.budget")

# Categories a user can realistically cut back on.
DISCRETIONARY_CATEGORIES: tuple[Category, ...] = (
    Category.ENTERTAINMENT,
    Category.SHOPPING,
    Category.FOOD,
    Category.SUBSCRIPTIONS,
)
ADJUSTMENT_FACTOR = Decimal("0.8")
ADJUSTMENT_LOOKBACK_MONTHS = 3
# Smaller cuts are not worth surfacing.
MIN_MEANINGFUL_REDUCTION = Decimal("50")

_ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class ProRataForecast:
    days_passed: int
    days_remaining: int
    avg_daily: Decimal
    projected: Decimal


def pro_rata(spent: Decimal, as_of: date) -> ProRataForecast:
    """Linearly extrapolate ``spent`` to the end of ``as_of``'s month."""

    days_passed = as_of.day
    days_remaining = days_in_month(as_of.year, as_of.month) - days_passed
    avg_daily = spent / max(1, days_passed)
    return ProRataForecast(
        days_passed=days_passed,
        days_remaining=days_remaining,
        avg_daily=avg_daily,
        projected=spent + avg_daily * days_remaining,
    )


def _as_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else to_money(value)


def _total(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), _ZERO)


def _percentage(part: Decimal, whole: Decimal) -> float:
    return float(part / whole * 100)


# ---------------------------------------------------------------------------
# Per-limit status
# ---------------------------------------------------------------------------


def limit_applies(limit: BudgetLimit, tx: Transaction) -> bool:
    """Return whether ``tx`` counts against ``limit``'s scope."""

    match limit:
        case GlobalLimit():
            return True
        case CategoryLimit(category=category):
            return tx.category == category
        case CardLimit(card_issuer=card_issuer):
            needle = card_issuer.casefold()
            return any(
                needle in issuer.casefold()
                for issuer in (tx.issuer, tx.credit_card_issuer)
                if issuer
            )
        case _:
            assert_never(limit)


def calculate_budget_status(
    transactions: Iterable[Transaction],
    limits: Iterable[BudgetLimit],
    as_of: date,
) -> list[BudgetStatus]:
    """Compute one :class:`BudgetStatus` per active limit for ``as_of``'s month."""

    expenses = month_expenses(transactions, as_of)
    statuses: list[BudgetStatus] = []

    for limit in limits:
        if not limit.is_active:
            continue
        spent = _total(t for t in expenses if limit_applies(limit, t))
        forecast = pro_rata(spent, as_of)
        statuses.append(
            BudgetStatus(
                limit_id=limit.id,
                limit_type=limit.type,
                category=limit.category if isinstance(limit, CategoryLimit) else None,
                card_issuer=limit.card_issuer if isinstance(limit, CardLimit) else None,
                limit=limit.monthly_limit,
                spent=spent,
                remaining=limit.monthly_limit - spent,
                percentage_used=_percentage(spent, limit.monthly_limit),
                is_over_budget=spent > limit.monthly_limit,
                projected_spend=forecast.projected,
                projected_percentage=_percentage(forecast.projected, limit.monthly_limit),
                will_exceed=forecast.projected > limit.monthly_limit,
            )
        )
    return statuses


# ---------------------------------------------------------------------------
# Global overspend forecast
# ---------------------------------------------------------------------------


def calculate_overspend_projection(
    transactions: Iterable[Transaction],
    monthly_income: Decimal | int | float | str,
    as_of: date,
) -> OverspendProjection:
    """Forecast whether this month's expenses will exceed ``monthly_income``."""

    income = _as_decimal(monthly_income)
    expenses = month_expenses(transactions, as_of)
    total_spent = _total(expenses)
    forecast = pro_rata(total_spent, as_of)

    if forecast.projected <= income:
        return OverspendProjection(will_overspend=False)

    # Nothing spent yet but income below zero: the month is already over budget.
    remaining_budget = income - total_spent
    days_until = (
        math.floor(remaining_budget / forecast.avg_daily) if forecast.avg_daily > 0 else 0
    )

    # Insertion order is first-seen order, so max() breaks ties toward it.
    by_category: dict[Category, Decimal] = {}
    for t in expenses:
        by_category[t.category] = by_category.get(t.category, _ZERO) + t.amount
    category_at_risk = (
        max(by_category, key=lambda c: pro_rata(by_category[c], as_of).projected)
        if by_category
        else None
    )

    return OverspendProjection(
        will_overspend=True,
        projected_spend=forecast.projected,
        projected_overspend_date=as_of + timedelta(days=days_until),
        projected_overspend_amount=forecast.projected - income,
        category_at_risk=category_at_risk,
        days_until_overspend=days_until,
        days_remaining=forecast.days_remaining,
        recommended_daily_limit=remaining_budget / max(1, forecast.days_remaining),
    )


# ---------------------------------------------------------------------------
# Adjustment suggestions and savings feasibility
# ---------------------------------------------------------------------------


def generate_budget_adjustments(
    transactions: Iterable[Transaction],
    monthly_income: Decimal | int | float | str,
    savings_target: Decimal | int | float | str | None = None,
    *,
    as_of: date | None = None,
) -> list[BudgetAdjustmentSuggestion]:
    """Suggest 20% cuts on discretionary categories.

    The baseline is the average monthly spend over the last three months
    (the current month included). A suggestion is only surfaced when the cut
    exceeds ``MIN_MEANINGFUL_REDUCTION``. Suggestions are ordered by reduction,
    largest first; with ``savings_target`` the list stops at the first
    suggestion whose cumulative reduction reaches the target.
    """

    as_of = as_of or date.today()
    items = list(transactions)
    income = _as_decimal(monthly_income)

    totals: dict[Category, Decimal] = {}
    for offset in range(ADJUSTMENT_LOOKBACK_MONTHS):
        for t in month_expenses(items, add_months(as_of, -offset)):
            totals[t.category] = totals.get(t.category, _ZERO) + t.amount

    suggestions: list[BudgetAdjustmentSuggestion] = []
    for category in DISCRETIONARY_CATEGORIES:
        if category not in totals:
            continue
        avg_monthly = to_money(totals[category] / ADJUSTMENT_LOOKBACK_MONTHS)
        suggested = to_money(avg_monthly * ADJUSTMENT_FACTOR)
        reduction = avg_monthly - suggested
        if reduction <= MIN_MEANINGFUL_REDUCTION:
            continue
        rationale = (
            f"Over the last {ADJUSTMENT_LOOKBACK_MONTHS} months you spent {avg_monthly:.2f} "
            f"per month on {category.value}"
        )
        if income > 0:
            rationale += f" ({_percentage(avg_monthly, income):.0f}% of income)"
        rationale += f"; capping it at {suggested:.2f} saves {reduction:.2f}."
        suggestions.append(
            BudgetAdjustmentSuggestion(
                category=category,
                current_limit=avg_monthly,
                suggested_limit=suggested,
                reduction=reduction,
                rationale=rationale,
            )
        )

    suggestions.sort(key=lambda s: s.reduction, reverse=True)

    if savings_target is not None:
        target = _as_decimal(savings_target)
        covered = _ZERO
        for pos, s in enumerate(suggestions):
            covered += s.reduction
            if covered >= target:
                suggestions = suggestions[: pos + 1]
                break

    _logger.debug("adjustments:done as_of=%s suggestions=%d", as_of, len(suggestions))
    return suggestions


def check_savings_goal_feasibility(
    limits: Sequence[BudgetLimit],
    goal: SavingsGoal,
    monthly_income: Decimal | int | float | str,
) -> SavingsFeasibility:
    """Check whether income minus active global limits covers ``goal``."""

    income = _as_decimal(monthly_income)
    budgeted = sum(
        (lim.monthly_limit for lim in limits if isinstance(lim, GlobalLimit) and lim.is_active),
        _ZERO,
    )
    available = income - budgeted
    if goal.percentage_of_income:
        target = to_money(income * Decimal(str(goal.percentage_of_income)) / 100)
    else:
        target = goal.monthly_target

    if available >= target:
        return SavingsFeasibility(
            is_feasible=True,
            target=target,
            available=available,
            shortfall=None,
            message=f"You can save {target:.2f} per month within your current budget.",
        )
    shortfall = target - available
    return SavingsFeasibility(
        is_feasible=False,
        target=target,
        available=available,
        shortfall=shortfall,
        message=f"Your current budget cannot fund this goal; cut spending by {shortfall:.2f}.",
    )


__all__ = [
    "DISCRETIONARY_CATEGORIES",
    "MIN_MEANINGFUL_REDUCTION",
    "ProRataForecast",
    "calculate_budget_status",
    "calculate_overspend_projection",
    "check_savings_goal_feasibility",
    "generate_budget_adjustments",
    "limit_applies",
    "pro_rata",
]
