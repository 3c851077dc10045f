from __future__ import annotations

import io
import logging

import pytest

from budget_engine import logging_setup
from budget_engine.logging_setup import (
    configure_logging,
    get_logger,
    level_from_name,
    resolve_level,
)


@pytest.fixture
def fresh_package_logger(monkeypatch: pytest.MonkeyPatch) -> logging.Logger:
    monkeypatch.setattr(logging_setup, "_handler", None)
    pkg = logging.getLogger("budget_engine")
    monkeypatch.setattr(pkg, "handlers", [])
    monkeypatch.setattr(pkg, "propagate", True)
    monkeypatch.setattr(pkg, "level", logging.NOTSET)
    return pkg


def test_level_from_name():
    assert level_from_name(logging.DEBUG) == logging.DEBUG
    assert level_from_name("warning") == logging.WARNING
    assert level_from_name(" 15 ") == 15
    assert level_from_name("loud") is None
    assert level_from_name("") is None


def test_resolve_level_falls_back_to_env_then_info(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUDGET_ENGINE_LOG_LEVEL", "error")
    assert resolve_level(None) == logging.ERROR
    assert resolve_level("nonsense") == logging.ERROR
    assert resolve_level("debug") == logging.DEBUG

    monkeypatch.setenv("BUDGET_ENGINE_LOG_LEVEL", "also-nonsense")
    assert resolve_level(None) == logging.INFO


def test_get_logger_is_silent_until_configured(fresh_package_logger: logging.Logger):
    log = get_logger("budget_engine.tests")

    assert log.name == "budget_engine.tests"
    assert [type(h) for h in fresh_package_logger.handlers] == [logging.NullHandler]


def test_configure_logging_installs_one_handler(fresh_package_logger: logging.Logger):
    get_logger("budget_engine.tests")
    out = io.StringIO()

    configure_logging("info", stream=out)
    configure_logging("debug")

    [handler] = fresh_package_logger.handlers
    assert isinstance(handler, logging.StreamHandler)
    assert fresh_package_logger.level == logging.DEBUG

    get_logger("budget_engine.tests").debug("alerts:saved added=%d", 2)
    assert "budget_engine.tests alerts:saved added=2" in out.getvalue()
