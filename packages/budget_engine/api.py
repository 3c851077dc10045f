"""Public operations of the engine.

These are thin entry points over the pure modules. Dates cross this boundary
as ``datetime.date``. Projection policy defaults come from
:class:`~budget_engine.settings.EngineSettings` (environment) unless a caller
passes ``settings`` explicitly.

``process_and_save_alerts`` is the only operation with a side effect: it
reads the alert store, merges the newly generated alerts by id, and writes
the store back.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from .alerts import AlertEngine, generate_alerts
from .budget import (
    calculate_budget_status,
    calculate_overspend_projection,
    check_savings_goal_feasibility,
    generate_budget_adjustments,
)
from .duplicates import find_duplicate_groups
from .models import BudgetAlert, Transaction
from .recurrence import merge_with_projections
from .recurrence import project_recurring_transactions as _project
from .settings import EngineSettings
from .similarity import calculate_similarity, fuzzy_match
from .store import KeyValueStore

type Money = Decimal | int | float | str


def project_recurring_transactions(
    transactions: Iterable[Transaction],
    target_date: date,
    *,
    settings: EngineSettings | None = None,
) -> list[Transaction]:
    """Project recurring transactions into ``target_date``'s month."""

    settings = settings or EngineSettings.from_env()
    return _project(
        transactions,
        target_date,
        start=settings.projection_start,
        clamp=settings.clamp_policy,
    )


def merged_view(
    transactions: Iterable[Transaction],
    as_of: date,
    *,
    settings: EngineSettings | None = None,
) -> list[Transaction]:
    """Real transactions plus the projected occurrences for ``as_of``'s month."""

    settings = settings or EngineSettings.from_env()
    return merge_with_projections(
        transactions,
        as_of,
        start=settings.projection_start,
        clamp=settings.clamp_policy,
    )


def process_and_save_alerts(
    transactions: Iterable[Transaction],
    monthly_income: Money,
    as_of: date,
    *,
    store: KeyValueStore | None = None,
    settings: EngineSettings | None = None,
) -> list[BudgetAlert]:
    """Generate alerts over the merged view and persist the new ones.

    Returns the full stored alert list after the merge.
    """

    settings = settings or EngineSettings.from_env()
    store = store if store is not None else settings.open_store()
    view = merged_view(transactions, as_of, settings=settings)
    return AlertEngine(store).process_and_save(view, monthly_income, as_of)


__all__ = [
    "calculate_budget_status",
    "calculate_overspend_projection",
    "calculate_similarity",
    "check_savings_goal_feasibility",
    "find_duplicate_groups",
    "fuzzy_match",
    "generate_alerts",
    "generate_budget_adjustments",
    "merged_view",
    "process_and_save_alerts",
    "project_recurring_transactions",
]
