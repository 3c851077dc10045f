"""Environment-driven engine settings.

Variables (all optional):

- ``BUDGET_ENGINE_STORE_DIR``: root of the JSON file store
  (default ``./.budget_engine``).
- ``BUDGET_ENGINE_DATABASE_URL``: SQLAlchemy URL; when set the SQL store is
  used instead of the JSON file store.
- ``BUDGET_ENGINE_PROJECTION_START``: ``strict`` (default) or ``inclusive``.
- ``BUDGET_ENGINE_CLAMP_POLICY``: ``target_month_end`` (default) or
  ``previous_month_end``.

The CLI loads a ``.env`` from the working directory before reading these.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .recurrence import ClampPolicy, ProjectionStart
from .store import JsonFileStore, KeyValueStore, default_store_dir


def _env_choice[E: (ProjectionStart, ClampPolicy)](name: str, enum_cls: type[E], default: E) -> E:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"{name}={raw!r} is not one of: {allowed}") from None


@dataclass(frozen=True, slots=True)
class EngineSettings:
    store_dir: Path = field(default_factory=default_store_dir)
    database_url: str | None = None
    projection_start: ProjectionStart = ProjectionStart.STRICT
    clamp_policy: ClampPolicy = ClampPolicy.TARGET_MONTH_END

    @classmethod
    def from_env(cls) -> EngineSettings:
        """Build settings from ``BUDGET_ENGINE_*`` variables.

        Raises ``ValueError`` for an unrecognized policy value so that a typo
        does not silently fall back to the default behavior.
        """

        db_url = os.getenv("BUDGET_ENGINE_DATABASE_URL")
        return cls(
            store_dir=default_store_dir(),
            database_url=db_url.strip() if db_url and db_url.strip() else None,
            projection_start=_env_choice(
                "BUDGET_ENGINE_PROJECTION_START", ProjectionStart, ProjectionStart.STRICT
            ),
            clamp_policy=_env_choice(
                "BUDGET_ENGINE_CLAMP_POLICY", ClampPolicy, ClampPolicy.TARGET_MONTH_END
            ),
        )

    def open_store(self) -> KeyValueStore:
        if self.database_url:
            from .sql_store import SqlStore  # deferred: SQLAlchemy only when configured

            return SqlStore.from_url(self.database_url)
        return JsonFileStore(self.store_dir)


__all__ = ["EngineSettings"]
