# =============================================================================
# tests/unit/test_base_service.py
# Unit Tests for BaseService and ServiceResult
# =============================================================================

import asyncio
import logging

from arwords_core.errors import NetworkFault
from arwords_core.services.base_service import BaseService, ServiceResult


class LookupService(BaseService):
    """Minimal concrete service."""


class TestRun:
    """ServiceResult wrapping and operation logging"""

    def test_success_wraps_data(self, caplog):
        service = LookupService()

        async def lookup():
            return ["book"]

        with caplog.at_level(logging.INFO):
            result = asyncio.run(service.run("Lookup", lookup))

        assert result.success
        assert result.data == ["book"]
        assert "Lookup... completed" in caplog.text

    def test_failure_is_logged_once(self, caplog):
        service = LookupService()

        async def lookup():
            raise NetworkFault("502 from backend", operation="search_entries")

        with caplog.at_level(logging.INFO):
            result = asyncio.run(service.run("Lookup", lookup))

        errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert not result.success
        assert result.error_code == NetworkFault("x").code
        assert len(errors) == 1
        assert "Lookup... failed" in errors[0].getMessage()
        assert "Lookup... completed" not in caplog.text

    def test_from_exception_logs_by_default(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = ServiceResult.from_exception(NetworkFault("timeout"))

        assert not result.success
        assert "timeout" in caplog.text
