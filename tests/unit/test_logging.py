# =============================================================================
# tests/unit/test_logging.py
# Unit Tests for Logging Setup
# =============================================================================

import logging

import pytest

from arwords_core.logging import LogContext, get_logger, setup_logging


def test_setup_quiets_client_libraries():
    setup_logging("debug")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("postgrest").level == logging.WARNING


def test_unknown_level_name_falls_back_to_info():
    setup_logging("chatty")

    assert logging.getLogger().level == logging.INFO


def test_log_context_reports_failure(caplog):
    logger = get_logger("arwords_core.tests")

    with caplog.at_level(logging.INFO, logger="arwords_core.tests"):
        with pytest.raises(RuntimeError):
            with LogContext(logger, "Writing batch") as ctx:
                raise RuntimeError("disk full")

    assert ctx.elapsed >= 0
    assert "Writing batch... started" in caplog.text
    assert "Writing batch... failed" in caplog.text
