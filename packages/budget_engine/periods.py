"""Calendar helpers shared by the projector, the analyzer and the alert rules.

All helpers operate on ``datetime.date`` values. Month identity is the pair
``(year, month)``; ``month_index`` flattens it into a single ordinal so that
month comparisons are plain integer comparisons.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date
from typing import Literal

from dateutil.relativedelta import relativedelta

from .models import Transaction, TransactionType

type TimePeriod = Literal["month", "year", "all"]


def effective_date(tx: Transaction) -> date:
    """Return the cash-flow date (``payment_date``) or fall back to ``date``."""

    return tx.payment_date or tx.date


def month_index(d: date) -> int:
    return d.year * 12 + (d.month - 1)


def month_key(d: date) -> str:
    """Return the ``YYYY-MM`` label of the month containing ``d``."""

    return f"{d.year:04d}-{d.month:02d}"


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, months: int) -> date:
    """Shift ``d`` by whole months, clamping the day to the target month."""

    return d + relativedelta(months=months)


def in_period(tx: Transaction, reference: date, period: TimePeriod = "month") -> bool:
    eff = effective_date(tx)
    if period == "month":
        return month_index(eff) == month_index(reference)
    if period == "year":
        return eff.year == reference.year
    return True


def filter_by_period(
    transactions: Iterable[Transaction], reference: date, period: TimePeriod = "month"
) -> list[Transaction]:
    """Keep transactions whose effective date falls in ``reference``'s period."""

    return [t for t in transactions if in_period(t, reference, period)]


def month_expenses(transactions: Iterable[Transaction], reference: date) -> list[Transaction]:
    """EXPENSE transactions of the calendar month containing ``reference``."""

    return [
        t
        for t in transactions
        if t.type == TransactionType.EXPENSE and in_period(t, reference, "month")
    ]


__all__ = [
    "TimePeriod",
    "add_months",
    "days_in_month",
    "effective_date",
    "filter_by_period",
    "in_period",
    "month_expenses",
    "month_index",
    "month_key",
]
