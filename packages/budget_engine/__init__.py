"""Public interface for the ``budget_engine`` package.

This module exposes the engine's operations and public models as the stable
import surface. There is no runtime logic here, only symbol re-exports.
"""

from .alerts import AlertEngine, merge_alerts
from .api import (
    calculate_budget_status,
    calculate_overspend_projection,
    calculate_similarity,
    check_savings_goal_feasibility,
    find_duplicate_groups,
    fuzzy_match,
    generate_alerts,
    generate_budget_adjustments,
    merged_view,
    process_and_save_alerts,
    project_recurring_transactions,
)
from .duplicates import ignore_duplicate, mark_as_duplicate
from .models import (
    AlertConfiguration,
    AlertType,
    BudgetAdjustmentSuggestion,
    BudgetAlert,
    BudgetLimit,
    BudgetStatus,
    CardLimit,
    Category,
    CategoryLimit,
    DuplicateCandidate,
    DuplicateGroup,
    GlobalLimit,
    ImportedInvoice,
    OverspendProjection,
    SavingsFeasibility,
    SavingsGoal,
    Severity,
    Transaction,
    TransactionType,
    parse_transactions,
)
from .recurrence import ClampPolicy, ProjectionStart
from .settings import EngineSettings
from .store import JsonFileStore, KeyValueStore, MemoryStore, Repository

__all__ = [
    # API
    "calculate_budget_status",
    "calculate_overspend_projection",
    "calculate_similarity",
    "check_savings_goal_feasibility",
    "find_duplicate_groups",
    "fuzzy_match",
    "generate_alerts",
    "generate_budget_adjustments",
    "ignore_duplicate",
    "mark_as_duplicate",
    "merge_alerts",
    "merged_view",
    "process_and_save_alerts",
    "project_recurring_transactions",
    # Engine, settings and storage
    "AlertEngine",
    "ClampPolicy",
    "EngineSettings",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "ProjectionStart",
    "Repository",
    # Models / types
    "AlertConfiguration",
    "AlertType",
    "BudgetAdjustmentSuggestion",
    "BudgetAlert",
    "BudgetLimit",
    "BudgetStatus",
    "CardLimit",
    "Category",
    "CategoryLimit",
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
    "parse_transactions",
]
