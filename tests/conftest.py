"""Pytest configuration for test isolation.

The engine persists limits, alert configurations and alerts under a default
project-relative directory (``./.budget_engine``). When tests run in the same
working tree, those files would leak state from one test into the next.

To keep tests hermetic, every test gets its own store directory via an autouse
fixture, and the policy variables are cleared so the defaults apply unless a
test sets them.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `budget_engine` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
# `packages/` precedes the repo root so local packages resolve first; the root
# makes `tests.helpers` importable.
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

_ENV_VARS = (
    "BUDGET_ENGINE_DATABASE_URL",
    "BUDGET_ENGINE_PROJECTION_START",
    "BUDGET_ENGINE_CLAMP_POLICY",
    "BUDGET_ENGINE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_store_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ``BUDGET_ENGINE_STORE_DIR`` at the test's own temporary directory."""

    store_root = tmp_path / "store"
    store_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("BUDGET_ENGINE_STORE_DIR", os.fspath(store_root))
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return store_root
