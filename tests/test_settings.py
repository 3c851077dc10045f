from __future__ import annotations

from pathlib import Path

import pytest

from budget_engine.recurrence import ClampPolicy, ProjectionStart
from budget_engine.settings import EngineSettings
from budget_engine.sql_store import SqlStore
from budget_engine.store import JsonFileStore


def test_defaults(_isolate_store_dir: Path):
    settings = EngineSettings.from_env()
    assert settings.projection_start is ProjectionStart.STRICT
    assert settings.clamp_policy is ClampPolicy.TARGET_MONTH_END
    assert settings.database_url is None
    assert settings.store_dir == _isolate_store_dir.resolve()
    assert isinstance(settings.open_store(), JsonFileStore)


def test_policies_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUDGET_ENGINE_PROJECTION_START", " Inclusive ")
    monkeypatch.setenv("BUDGET_ENGINE_CLAMP_POLICY", "previous_month_end")
    settings = EngineSettings.from_env()
    assert settings.projection_start is ProjectionStart.INCLUSIVE
    assert settings.clamp_policy is ClampPolicy.PREVIOUS_MONTH_END


def test_unknown_policy_is_an_error(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUDGET_ENGINE_CLAMP_POLICY", "end_of_month")
    with pytest.raises(ValueError, match="BUDGET_ENGINE_CLAMP_POLICY"):
        EngineSettings.from_env()


def test_database_url_selects_sql_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUDGET_ENGINE_DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'x.db'}")
    assert isinstance(EngineSettings.from_env().open_store(), SqlStore)
