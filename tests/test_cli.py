from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from budget_engine.cli import app

runner = CliRunner()


def _write(tmp_path: Path, records: list[dict[str, Any]], *, wrap: bool = False) -> str:
    path = tmp_path / "transactions.json"
    payload: Any = {"transactions": records} if wrap else records
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def _tx(id: str, description: str, amount: float, on: str, **extra: Any) -> dict[str, Any]:
    return {
        "id": id,
        "description": description,
        "amount": amount,
        "date": on,
        "type": "EXPENSE",
        "category": "other",
        **extra,
    }


RENT = _tx("rent", "Rent", 1500, "2026-01-31", category="housing", is_recurring=True)


def _json(result) -> Any:
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_project_json(tmp_path: Path):
    path = _write(tmp_path, [RENT])
    data = _json(runner.invoke(app, ["project", path, "--as-of", "2026-02-15", "--json"]))

    assert [t["id"] for t in data] == ["rent-projected-2026-02"]
    assert data[0]["date"] == "2026-02-28"
    assert data[0]["is_projected"] is True


def test_project_honours_clamp_policy_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUDGET_ENGINE_CLAMP_POLICY", "previous_month_end")
    path = _write(tmp_path, [RENT], wrap=True)
    data = _json(runner.invoke(app, ["project", path, "--as-of", "2026-02-15", "--json"]))
    assert data[0]["date"] == "2026-01-31"


def test_project_table_output(tmp_path: Path):
    path = _write(tmp_path, [RENT])
    result = runner.invoke(app, ["project", path, "--as-of", "2026-03-01"])
    assert result.exit_code == 0, result.output
    assert "rent-projected-2026-03" in result.stdout


def test_set_limit_then_budget_status(tmp_path: Path):
    result = runner.invoke(
        app, ["set-limit", "--id", "food", "--amount", "1000", "--category", "food"]
    )
    assert result.exit_code == 0, result.output

    path = _write(tmp_path, [_tx("m", "Market", 800, "2026-06-05", category="food")])
    [status] = _json(
        runner.invoke(app, ["budget-status", path, "--as-of", "2026-06-20", "--json"])
    )

    assert status["limit_id"] == "food"
    assert status["spent"] == "800.00"
    assert status["will_exceed"] is True


def test_set_limit_rejects_invalid_input():
    result = runner.invoke(app, ["set-limit", "--id", "x", "--amount", "0"])
    assert result.exit_code == 1

    result = runner.invoke(
        app, ["set-limit", "--id", "x", "--amount", "10", "--category", "food", "--card", "nu"]
    )
    assert result.exit_code == 1


def test_alerts_save_is_idempotent(tmp_path: Path, _isolate_store_dir: Path):
    runner.invoke(app, ["set-limit", "--id", "food", "--amount", "1000", "--category", "food"])
    path = _write(tmp_path, [_tx("m", "Market", 850, "2026-06-05", category="food")])
    args = ["alerts", path, "--income", "100000", "--as-of", "2026-06-20", "--save", "--json"]

    _json(runner.invoke(app, args))
    stored = _json(runner.invoke(app, args))

    assert [a["id"] for a in stored] == ["limit_80_food_2026-06"]
    assert (_isolate_store_dir / "alerts.json").exists()


def test_alerts_without_save_do_not_persist(tmp_path: Path, _isolate_store_dir: Path):
    path = _write(
        tmp_path,
        [
            _tx("r", "Rent", 2000, "2026-06-01", category="housing"),
            _tx("m", "Market", 800, "2026-06-20", category="food"),
        ],
    )
    data = _json(
        runner.invoke(
            app, ["alerts", path, "--income", "3000", "--as-of", "2026-06-25", "--json"]
        )
    )
    assert [a["type"] for a in data] == ["overspend_projection"]
    assert not (_isolate_store_dir / "alerts.json").exists()


def test_overspend_json(tmp_path: Path):
    path = _write(
        tmp_path,
        [
            _tx("r", "Rent", 2000, "2026-06-01", category="housing"),
            _tx("m", "Market", 800, "2026-06-20", category="food"),
        ],
    )
    data = _json(
        runner.invoke(
            app, ["overspend", path, "--income", "3000", "--as-of", "2026-06-25", "--json"]
        )
    )
    assert data["will_overspend"] is True
    assert data["days_until_overspend"] == 1
    assert data["category_at_risk"] == "housing"


def test_duplicates_json(tmp_path: Path):
    path = _write(
        tmp_path,
        [
            _tx("a", "Uber", 25, "2026-06-10", category="transport"),
            _tx("b", "Uber Trip", 25, "2026-06-10", category="transport"),
            _tx("c", "Bakery", 7, "2026-06-01", category="food"),
        ],
    )
    [group] = _json(runner.invoke(app, ["duplicates", path, "--json"]))
    ids = {group["original"]["id"], group["duplicates"][0]["transaction"]["id"]}
    assert ids == {"a", "b"}


def test_adjustments_without_suggestions(tmp_path: Path):
    path = _write(tmp_path, [_tx("c", "Bakery", 7, "2026-06-01", category="food")])
    result = runner.invoke(app, ["adjustments", path, "--income", "3000", "--as-of", "2026-06-20"])
    assert result.exit_code == 0, result.output
    assert "No adjustments" in result.stdout


def test_unreadable_input_exits_with_error(tmp_path: Path):
    missing = tmp_path / "missing.json"
    assert runner.invoke(app, ["duplicates", str(missing)]).exit_code == 1

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"rows": []}), encoding="utf-8")
    assert runner.invoke(app, ["duplicates", str(bad)]).exit_code == 1


def test_invalid_policy_env_exits_with_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUDGET_ENGINE_PROJECTION_START", "sometimes")
    path = _write(tmp_path, [RENT])
    assert runner.invoke(app, ["project", path]).exit_code == 1


def test_invalid_as_of_is_a_usage_error(tmp_path: Path):
    path = _write(tmp_path, [RENT])
    assert runner.invoke(app, ["project", path, "--as-of", "June"]).exit_code == 2


def test_unknown_log_level_is_a_usage_error(tmp_path: Path):
    path = _write(tmp_path, [RENT])
    result = runner.invoke(app, ["--log-level", "chatty", "project", path])
    assert result.exit_code == 2

    ok = runner.invoke(app, ["--log-level", "warning", "project", path, "--json"])
    assert ok.exit_code == 0, ok.output
