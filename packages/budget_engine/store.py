"""Key-value persistence port, adapters, and the typed collection repository.

The engine treats persistence as an opaque document store: ``get(key)``
returns the whole JSON-serializable collection stored under ``key`` (or
``None`` when absent) and ``set(key, value)`` replaces it. Adapters:

- :class:`MemoryStore` keeps JSON text in a dict (a realistic fake for tests).
- :class:`JsonFileStore` keeps one ``<key>.json`` file per collection under a
  root directory. Writes go to ``<key>.json.tmp`` first and are moved into
  place with ``os.replace``.
- :class:`budget_engine.sql_store.SqlStore` keeps rows in a SQL table.

:class:`Repository` is the only place that interprets stored documents. It
validates each record with Pydantic; a collection that cannot be read at all
degrades to empty (alert configurations degrade to the default set), and an
individual invalid record is skipped. Neither case raises.
"""

from __future__ import annotations

import contextlib
import json
import os
import re
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .logging_setup import get_logger
from .models import (
    BUDGET_LIMIT_ADAPTER,
    AlertConfiguration,
    AlertType,
    BudgetAlert,
    BudgetLimit,
    ImportedInvoice,
    SavingsGoal,
    default_alert_configurations,
)

_logger = get_logger("budget_engine.store")

BUDGET_LIMITS_KEY = "budget_limits"
ALERT_CONFIG_KEY = "alert_configurations"
ALERTS_KEY = "alerts"
IMPORTED_INVOICES_KEY = "imported_invoices"
SAVINGS_GOALS_KEY = "savings_goals"

_KEY_RE = re.compile(r"^[a-z][a-z0-9_]*$")

M = TypeVar("M")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


def _validate_key(key: str) -> str:
    """Keys double as file names; restrict them to lowercase identifiers."""

    if not _KEY_RE.fullmatch(key):
        raise ValueError(f"Invalid store key {key!r}: use lowercase letters, digits, underscores")
    return key


class MemoryStore:
    """In-process store that round-trips values through JSON like a real backend."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any:
        raw = self._data.get(_validate_key(key))
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[_validate_key(key)] = json.dumps(value, ensure_ascii=False)

    def set_raw(self, key: str, text: str) -> None:
        """Store ``text`` verbatim (useful to simulate corrupted documents)."""

        self._data[_validate_key(key)] = text


def default_store_dir() -> Path:
    """Return the store root.

    Default: ``./.budget_engine`` under the current working directory.
    Override: ``BUDGET_ENGINE_STORE_DIR`` (absolute or relative).
    """

    root = os.getenv("BUDGET_ENGINE_STORE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".budget_engine").resolve()


class JsonFileStore:
    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root).expanduser().resolve() if root is not None else default_store_dir()

    def _path(self, key: str) -> Path:
        return self.root / f"{_validate_key(key)}.json"

    def get(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        # Decode errors propagate; the repository decides how to degrade.
        return json.loads(path.read_text(encoding="utf-8"))

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(value, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Repository:
    """Typed access to the engine's persisted collections."""

    def __init__(self, store: KeyValueStore, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.store = store
        self._clock = clock

    # ---- generic load/save -------------------------------------------------

    def _read(self, key: str) -> tuple[list[Any] | None, bool]:
        """Return ``(items, ok)``; ``items`` is None when the key is absent."""

        try:
            raw = self.store.get(key)
        except (OSError, UnicodeDecodeError, ValueError):
            _logger.warning("store:read_failed key=%s; using empty collection", key, exc_info=True)
            return None, False
        if raw is None:
            return None, True
        if not isinstance(raw, list):
            _logger.warning(
                "store:malformed key=%s type=%s; using empty collection", key, type(raw).__name__
            )
            return None, False
        return raw, True

    def _load(self, key: str, validate: Callable[[Any], M]) -> list[M]:
        raw, _ok = self._read(key)
        return self._validate_items(key, raw or [], validate)

    @staticmethod
    def _validate_items(key: str, raw: Iterable[Any], validate: Callable[[Any], M]) -> list[M]:
        out: list[M] = []
        for pos, item in enumerate(raw):
            try:
                out.append(validate(item))
            except ValidationError as exc:
                _logger.warning(
                    "store:skip_invalid key=%s pos=%d errors=%d", key, pos, exc.error_count()
                )
        return out

    def _save(self, key: str, items: Iterable[BaseModel]) -> None:
        self.store.set(key, [m.model_dump(mode="json") for m in items])

    # ---- budget limits -------------------------------------------------------

    def budget_limits(self) -> list[BudgetLimit]:
        return self._load(BUDGET_LIMITS_KEY, BUDGET_LIMIT_ADAPTER.validate_python)

    def save_budget_limit(self, limit: BudgetLimit) -> list[BudgetLimit]:
        """Insert ``limit`` first, or replace the stored limit with the same id."""

        current = self.budget_limits()
        now = self._clock()
        if any(lim.id == limit.id for lim in current):
            updated = [
                limit.model_copy(update={"updated_at": now}) if lim.id == limit.id else lim
                for lim in current
            ]
        else:
            stamped = limit if limit.created_at else limit.model_copy(update={"created_at": now})
            updated = [stamped, *current]
        self._save(BUDGET_LIMITS_KEY, updated)
        return updated

    def delete_budget_limit(self, limit_id: str) -> list[BudgetLimit]:
        updated = [lim for lim in self.budget_limits() if lim.id != limit_id]
        self._save(BUDGET_LIMITS_KEY, updated)
        return updated

    def toggle_budget_limit(self, limit_id: str) -> list[BudgetLimit]:
        current = self.budget_limits()
        if not any(lim.id == limit_id for lim in current):
            return current
        now = self._clock()
        updated = [
            lim.model_copy(update={"is_active": not lim.is_active, "updated_at": now})
            if lim.id == limit_id
            else lim
            for lim in current
        ]
        self._save(BUDGET_LIMITS_KEY, updated)
        return updated

    # ---- alert configuration --------------------------------------------------

    def alert_configurations(self) -> list[AlertConfiguration]:
        """Return stored configurations, seeding the defaults on first use.

        Rule types missing from the stored set are filled in from the defaults
        (enabled) so that newly introduced rules are active.
        """

        raw, ok = self._read(ALERT_CONFIG_KEY)
        if raw is None:
            defaults = default_alert_configurations()
            if ok:
                self._save(ALERT_CONFIG_KEY, defaults)
            return defaults

        configs = self._validate_items(ALERT_CONFIG_KEY, raw, AlertConfiguration.model_validate)
        present = {c.alert_type for c in configs}
        configs.extend(c for c in default_alert_configurations() if c.alert_type not in present)
        return configs

    def save_alert_configuration(self, config: AlertConfiguration) -> list[AlertConfiguration]:
        now = self._clock()
        current = self.alert_configurations()
        updated = [
            config.model_copy(update={"updated_at": now}) if c.id == config.id else c
            for c in current
        ]
        self._save(ALERT_CONFIG_KEY, updated)
        return updated

    def toggle_alert_type(self, alert_type: AlertType | str) -> list[AlertConfiguration]:
        alert_type = AlertType(alert_type)
        now = self._clock()
        updated = [
            c.model_copy(update={"is_enabled": not c.is_enabled, "updated_at": now})
            if c.alert_type == alert_type
            else c
            for c in self.alert_configurations()
        ]
        self._save(ALERT_CONFIG_KEY, updated)
        return updated

    # ---- alerts -----------------------------------------------------------------

    def alerts(self) -> list[BudgetAlert]:
        return self._load(ALERTS_KEY, BudgetAlert.model_validate)

    def save_alerts(self, alerts: Iterable[BudgetAlert]) -> None:
        self._save(ALERTS_KEY, alerts)

    def update_alert(self, alert_id: str, **changes: Any) -> list[BudgetAlert]:
        updated = [
            a.model_copy(update=changes) if a.id == alert_id else a for a in self.alerts()
        ]
        self.save_alerts(updated)
        return updated

    def prune_alerts(self, days_old: int = 30) -> list[BudgetAlert]:
        """Drop alerts created more than ``days_old`` days ago."""

        cutoff = _aware(self._clock()) - timedelta(days=days_old)
        kept = [a for a in self.alerts() if _aware(a.created_at) > cutoff]
        self.save_alerts(kept)
        return kept

    # ---- imported invoices ------------------------------------------------------

    def imported_invoices(self) -> list[ImportedInvoice]:
        return self._load(IMPORTED_INVOICES_KEY, ImportedInvoice.model_validate)

    def save_imported_invoice(self, invoice: ImportedInvoice) -> list[ImportedInvoice]:
        updated = [invoice, *(i for i in self.imported_invoices() if i.id != invoice.id)]
        self._save(IMPORTED_INVOICES_KEY, updated)
        return updated

    # ---- savings goals ---------------------------------------------------------

    def savings_goals(self) -> list[SavingsGoal]:
        return self._load(SAVINGS_GOALS_KEY, SavingsGoal.model_validate)

    def save_savings_goal(self, goal: SavingsGoal) -> list[SavingsGoal]:
        """Insert ``goal`` first, or replace the stored goal with the same id."""

        current = self.savings_goals()
        now = self._clock()
        if any(g.id == goal.id for g in current):
            updated = [
                goal.model_copy(update={"updated_at": now}) if g.id == goal.id else g
                for g in current
            ]
        else:
            stamped = goal if goal.created_at else goal.model_copy(update={"created_at": now})
            updated = [stamped, *current]
        self._save(SAVINGS_GOALS_KEY, updated)
        return updated

    def delete_savings_goal(self, goal_id: str) -> list[SavingsGoal]:
        updated = [g for g in self.savings_goals() if g.id != goal_id]
        self._save(SAVINGS_GOALS_KEY, updated)
        return updated


def _aware(value: datetime) -> datetime:
    # Naive timestamps (stored documents, host clocks) are taken as UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


__all__ = [
    "ALERTS_KEY",
    "ALERT_CONFIG_KEY",
    "BUDGET_LIMITS_KEY",
    "IMPORTED_INVOICES_KEY",
    "SAVINGS_GOALS_KEY",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "Repository",
    "default_store_dir",
]
