"""Projection of recurring transactions into a target month.

A recurring transaction's recorded occurrence is its *anchor*. For a viewed
month, each anchor yields at most one synthetic occurrence
(``is_projected=True``) that is never persisted and is recomputed on every
call. Synthetic ids are derived from the source id and the target month, so
repeated calls for the same month return equal objects.

Two behaviors are policy-controlled because historical variants disagree:

- ``ProjectionStart``: whether the anchor's own month is eligible for a
  projection (``INCLUSIVE``) or projection starts the month after
  (``STRICT``, default). The source is the posted charge of its own month,
  so under either policy that month counts it once.
- ``ClampPolicy``: where an anchor day that the target month lacks (the 31st
  in a 30-day month) lands. ``TARGET_MONTH_END`` (default) uses the last day
  of the target month. ``PREVIOUS_MONTH_END`` reproduces the day-0 rollback
  variant, which places the occurrence on the last day of the previous month
  and therefore outside the target month.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from enum import StrEnum

from .logging_setup import get_logger
from .models import Transaction
from .periods import days_in_month, effective_date, month_index

_logger = get_logger("budget_engine.recurrence")


class ProjectionStart(StrEnum):
    STRICT = "strict"
    INCLUSIVE = "inclusive"


class ClampPolicy(StrEnum):
    TARGET_MONTH_END = "target_month_end"
    PREVIOUS_MONTH_END = "previous_month_end"


def synthetic_id(source_id: str, year: int, month: int) -> str:
    return f"{source_id}-projected-{year:04d}-{month:02d}"


def projected_occurrence_date(
    anchor: date, year: int, month: int, clamp: ClampPolicy = ClampPolicy.TARGET_MONTH_END
) -> date:
    """Place ``anchor``'s day-of-month in ``year``/``month`` under ``clamp``."""

    last = days_in_month(year, month)
    if anchor.day <= last:
        return date(year, month, anchor.day)
    if ClampPolicy(clamp) is ClampPolicy.TARGET_MONTH_END:
        return date(year, month, last)
    return date(year, month, 1) - timedelta(days=1)


def _project_one(
    source: Transaction,
    target: date,
    real_in_target: Sequence[Transaction],
    *,
    start: ProjectionStart,
    clamp: ClampPolicy,
) -> Transaction | None:
    anchor = effective_date(source)
    target_idx = month_index(target)

    # Cancellation stops projection from the end month onwards.
    end = source.recurring_end_date
    if end is not None and month_index(end) <= target_idx:
        return None

    anchor_idx = month_index(anchor)
    if start is ProjectionStart.STRICT and target_idx <= anchor_idx:
        return None
    if start is ProjectionStart.INCLUSIVE and target_idx < anchor_idx:
        return None

    # The charge already posted for this month. In the anchor month the source
    # itself is that charge.
    if target_idx == anchor_idx or any(
        t.description == source.description for t in real_in_target
    ):
        return None

    occurrence = projected_occurrence_date(anchor, target.year, target.month, clamp)
    return source.model_copy(
        update={
            "id": synthetic_id(source.id, target.year, target.month),
            "date": occurrence,
            "payment_date": occurrence if source.payment_date is not None else None,
            "is_projected": True,
        }
    )


def project_recurring_transactions(
    transactions: Iterable[Transaction],
    target_date: date,
    *,
    start: ProjectionStart = ProjectionStart.STRICT,
    clamp: ClampPolicy = ClampPolicy.TARGET_MONTH_END,
) -> list[Transaction]:
    """Return synthetic occurrences of recurring transactions for ``target_date``'s month.

    Only real transactions flagged ``is_recurring`` act as sources. A source
    whose dates cannot be placed in the calendar is skipped; the call never
    raises because of a single record.
    """

    start = ProjectionStart(start)
    clamp = ClampPolicy(clamp)
    items = list(transactions)
    target_idx = month_index(target_date)
    real_in_target = [
        t for t in items if not t.is_projected and month_index(effective_date(t)) == target_idx
    ]

    projected: list[Transaction] = []
    for source in items:
        if not source.is_recurring or source.is_projected:
            continue
        try:
            occurrence = _project_one(
                source, target_date, real_in_target, start=start, clamp=clamp
            )
        except (ValueError, OverflowError):
            _logger.debug(
                "projection:skip_source id=%s target=%s", source.id, target_date, exc_info=True
            )
            continue
        if occurrence is not None:
            projected.append(occurrence)

    _logger.debug(
        "projection:done target=%04d-%02d sources=%d projected=%d",
        target_date.year,
        target_date.month,
        sum(1 for t in items if t.is_recurring and not t.is_projected),
        len(projected),
    )
    return projected


def merge_with_projections(
    transactions: Iterable[Transaction],
    target_date: date,
    *,
    start: ProjectionStart = ProjectionStart.STRICT,
    clamp: ClampPolicy = ClampPolicy.TARGET_MONTH_END,
) -> list[Transaction]:
    """Return the real transactions followed by the month's projections."""

    real = [t for t in transactions if not t.is_projected]
    return real + project_recurring_transactions(real, target_date, start=start, clamp=clamp)


__all__ = [
    "ClampPolicy",
    "ProjectionStart",
    "merge_with_projections",
    "project_recurring_transactions",
    "projected_occurrence_date",
    "synthetic_id",
]
