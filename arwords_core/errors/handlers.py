# =============================================================================
# arwords_core/errors/handlers.py
# Error Handling Utilities for the ArWords offline core
# =============================================================================

from __future__ import annotations
import functools
import inspect
import traceback
from dataclasses import dataclass, field
from typing import Optional, Callable, TypeVar, Any, Dict, Awaitable

from arwords_core.logging import get_logger
from .exceptions import (
    ArWordsError,
    AccessDenied,
    AuthenticationError,
    NetworkFault,
    OfflineUnavailable,
    StorageFault,
    TimeoutFault,
    VerificationFault,
)

logger = get_logger(__name__)

T = TypeVar("T")

GENERIC_FAILURE = "Something went wrong. Please try again later."


@dataclass(frozen=True)
class UserNotice:
    """What the presentation layer shows for a failed operation."""
    message: str
    code: str
    retryable: bool = False
    action: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def _notice_for(error: Exception) -> UserNotice:
    if isinstance(error, (NetworkFault, TimeoutFault)):
        return UserNotice(
            message="Unable to reach the server. Check your connection and try again.",
            code=error.code,
            retryable=True,
            action="retry",
            details=error.details,
        )
    if isinstance(error, StorageFault):
        # Local storage problems are not actionable by the user
        return UserNotice(
            message=GENERIC_FAILURE,
            code=error.code,
            retryable=False,
            action="contact_support",
            details=error.details,
        )
    if isinstance(error, AccessDenied):
        return UserNotice(
            message="Premium access is required to download the dictionary.",
            code=error.code,
            action="purchase",
        )
    if isinstance(error, OfflineUnavailable):
        return UserNotice(
            message="You are offline. Download the dictionary to search without a connection.",
            code=error.code,
            retryable=True,
            action="retry",
            details=error.details,
        )
    if isinstance(error, AuthenticationError):
        return UserNotice(message=error.message, code=error.code, action="sign_in")
    if isinstance(error, VerificationFault):
        return UserNotice(message=error.message, code=error.code, details=error.details)
    if isinstance(error, ArWordsError):
        return UserNotice(
            message=error.message,
            code=error.code,
            retryable=error.recoverable,
            details=error.details,
        )
    return UserNotice(message=GENERIC_FAILURE, code="UNKNOWN")


def handle_error(error: Exception, log_error: bool = True) -> UserNotice:
    """
    Centralized error handling function.

    Logs the error and converts it into a UserNotice the UI can render.
    Raw storage messages are never surfaced to the user.

    Args:
        error: The exception to handle
        log_error: Whether to log the error
    """
    notice = _notice_for(error)

    if log_error:
        if isinstance(error, ArWordsError):
            logger.error(f"[{error.code}] {error.message}", extra={"details": error.details})
        else:
            logger.error(
                f"[UNKNOWN] {error}",
                extra={"details": {"traceback": traceback.format_exc()}},
                exc_info=error,
            )

    return notice


async def safe_execute(
    func: Callable[..., Awaitable[T]],
    *args,
    default: Optional[T] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Await a coroutine function with automatic error handling.

    Usage:
        entries = await safe_execute(router.list_favorites, default=[])
    """
    try:
        return await func(*args, **kwargs)
    except Exception as e:
        handle_error(e)
        if reraise:
            raise
        return default


def error_boundary(default_return: Any = None, log: bool = True):
    """
    Decorator that turns any failure into a safe default value.

    Works on plain functions and coroutine functions.

    Usage:
        @error_boundary(default_return=False)
        async def is_favorited(self, entry_id: str) -> bool:
            ...
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if log:
                        logger.warning(f"Error in {func.__name__}: {e}")
                    return default_return

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log:
                    logger.warning(f"Error in {func.__name__}: {e}")
                return default_return

        return wrapper

    return decorator
