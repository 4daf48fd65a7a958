# =============================================================================
# arwords_core/errors/__init__.py
# Centralized Error Handling for the ArWords offline core
# =============================================================================

from .exceptions import (
    ArWordsError,
    DataValidationError,
    StorageFault,
    NetworkFault,
    OfflineUnavailable,
    TimeoutFault,
    AccessDenied,
    VerificationFault,
    AuthenticationError,
    ConfigurationError,
)

from .handlers import (
    UserNotice,
    handle_error,
    safe_execute,
    error_boundary,
)

__all__ = [
    # Exceptions
    "ArWordsError",
    "DataValidationError",
    "StorageFault",
    "NetworkFault",
    "OfflineUnavailable",
    "TimeoutFault",
    "AccessDenied",
    "VerificationFault",
    "AuthenticationError",
    "ConfigurationError",
    # Handlers
    "UserNotice",
    "handle_error",
    "safe_execute",
    "error_boundary",
]
