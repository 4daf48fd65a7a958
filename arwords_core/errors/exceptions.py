# =============================================================================
# arwords_core/errors/exceptions.py
# Custom Exception Hierarchy for the ArWords offline core
# =============================================================================

from typing import Optional, Dict, Any


class ArWordsError(Exception):
    """
    Base exception for all ArWords core errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "STORAGE_001")
        details: Additional context as a dictionary
        recoverable: Whether retrying the operation can succeed
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "ARW_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# DATA LAYER EXCEPTIONS
# =============================================================================

class DataValidationError(ArWordsError):
    """Raised when a remote or local row cannot be turned into a typed record"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = repr(value)

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


class StorageFault(ArWordsError):
    """Local store open, schema or write failure"""

    def __init__(
        self,
        message: str,
        entry_id: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entry_id:
            details["entry_id"] = entry_id
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="STORAGE_001",
            details=details,
            recoverable=False,
            **kwargs,
        )

    @property
    def entry_id(self) -> Optional[str]:
        return self.details.get("entry_id")


# =============================================================================
# REMOTE / CONNECTIVITY EXCEPTIONS
# =============================================================================

class NetworkFault(ArWordsError):
    """Remote gateway unreachable, refused the request, or returned nothing usable"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if status:
            details["status"] = status

        super().__init__(
            message=message,
            code="NET_001",
            details=details,
            **kwargs,
        )


class OfflineUnavailable(ArWordsError):
    """Neither a local copy nor the remote store can serve the request"""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="OFFLINE_001",
            details=details,
            **kwargs,
        )


class TimeoutFault(ArWordsError):
    """A bounded wait on an external collaborator expired"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if seconds is not None:
            details["seconds"] = seconds

        super().__init__(
            message=message,
            code="TIMEOUT_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# ACCESS / PURCHASE EXCEPTIONS
# =============================================================================

class AccessDenied(ArWordsError):
    """The signed-in user has no offline dictionary entitlement"""

    def __init__(self, message: str = "Premium access required", **kwargs):
        super().__init__(message=message, code="ACCESS_001", **kwargs)


class VerificationFault(ArWordsError):
    """A store receipt did not pass verification"""

    def __init__(self, message: str, product_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if product_id:
            details["product_id"] = product_id

        super().__init__(
            message=message,
            code="PURCHASE_001",
            details=details,
            **kwargs,
        )


class AuthenticationError(ArWordsError):
    """No signed-in user, or the identity provider refused the request"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, code="AUTH_001", **kwargs)


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(ArWordsError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
