# =============================================================================
# arwords_core/services/base_service.py
# Base Service Class with Common Functionality
# =============================================================================

from __future__ import annotations
from abc import ABC
from typing import Optional, Dict, Any, Callable, Awaitable
from dataclasses import dataclass

from arwords_core.logging import get_logger, LogContext
from arwords_core.errors import handle_error, ArWordsError, UserNotice


@dataclass
class ServiceResult:
    """
    Standard result container for service operations.

    Failed results carry the UserNotice the UI should show.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def notice(self) -> Optional[UserNotice]:
        return (self.metadata or {}).get("notice")

    @classmethod
    def ok(cls, data: Any = None, metadata: Dict[str, Any] = None) -> ServiceResult:
        """Create a successful result"""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = "UNKNOWN",
        metadata: Dict[str, Any] = None
    ) -> ServiceResult:
        """Create a failed result"""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            metadata=metadata,
        )

    @classmethod
    def from_exception(cls, e: Exception, log_error: bool = True) -> ServiceResult:
        """Create a failed result from an exception"""
        notice = handle_error(e, log_error=log_error)
        metadata = {"notice": notice}
        if isinstance(e, ArWordsError):
            metadata["details"] = e.details
        return cls(
            success=False,
            error=notice.message,
            error_code=notice.code,
            metadata=metadata,
        )


class BaseService(ABC):
    """
    Abstract base class for UI-facing services.

    Provides common functionality:
    - Logging
    - Error handling
    - Progress callbacks
    - Result standardization

    Usage:
        class MyService(BaseService):
            async def search(self, term: str) -> ServiceResult:
                return await self.run("Searching", self.router.search, term)
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
        self._progress_callback: Optional[Callable[[int, str], None]] = None

    def set_progress_callback(self, callback: Callable[[int, str], None]) -> None:
        """
        Set a callback for progress updates.

        Args:
            callback: Function that takes (percentage: int, message: str)
        """
        self._progress_callback = callback

    def _update_progress(self, percentage: int, message: str = "") -> None:
        if self._progress_callback:
            self._progress_callback(percentage, message)

    def log_operation(self, operation: str) -> LogContext:
        return LogContext(self.logger, operation)

    async def run(
        self,
        operation: str,
        func: Callable[..., Awaitable[Any]],
        *args,
        **kwargs,
    ) -> ServiceResult:
        """
        Await a coroutine function with error handling and logging.

        Returns:
            ServiceResult with success/failure status
        """
        try:
            with self.log_operation(operation):
                data = await func(*args, **kwargs)
        except Exception as e:
            # LogContext has already logged the failure
            return ServiceResult.from_exception(e, log_error=False)
        return ServiceResult.ok(data)
