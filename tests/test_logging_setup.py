import logging

import pytest
from bank_buckets.logging_setup import get_logger, resolve_level


def test_resolve_level_prefers_argument_then_env(monkeypatch: pytest.MonkeyPatch):
    assert resolve_level(None) == logging.INFO
    assert resolve_level(" debug ") == logging.DEBUG

    monkeypatch.setenv("BANK_BUCKETS_LOG_LEVEL", "warning")
    assert resolve_level(None) == logging.WARNING
    assert resolve_level("ERROR") == logging.ERROR


def test_unknown_level_name_falls_back_to_info():
    assert resolve_level("chatty") == logging.INFO


def test_get_logger_returns_child_of_package_logger():
    logger = get_logger("bank_buckets.api")
    assert logger.name == "bank_buckets.api"
    assert logging.getLogger("bank_buckets").handlers
