# =============================================================================
# floodguard_core/errors/exceptions.py
# Custom Exception Hierarchy for FloodGuard
# =============================================================================

from typing import Optional, Dict, Any


class FloodGuardError(Exception):
    """
    Base exception for all FloodGuard errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "DATA_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
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
        self.code = code or "FG_000"
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
# STORAGE LAYER EXCEPTIONS
# =============================================================================

class RemoteMirrorError(FloodGuardError):
    """Raised when a call to the remote mirror fails (network, auth, schema)"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if collection:
            details["collection"] = collection

        super().__init__(
            message=message,
            code="REMOTE_001",
            details=details,
            **kwargs,
        )


class LocalStoreError(FloodGuardError):
    """Raised when the device-local cache cannot be read or written"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            code="LOCAL_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# RECORD EXCEPTIONS
# =============================================================================

class RecordNotFoundError(FloodGuardError):
    """Raised when an SOS request or rescuer id is unknown"""

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if collection:
            details["collection"] = collection
        if record_id:
            details["record_id"] = record_id

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


class InvalidTransitionError(FloodGuardError):
    """Raised when a status change or edit is not allowed from the current status"""

    def __init__(
        self,
        message: str,
        current: Optional[str] = None,
        requested: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if current:
            details["current"] = current
        if requested:
            details["requested"] = requested

        super().__init__(
            message=message,
            code="DATA_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# ATTRIBUTION EXCEPTIONS
# =============================================================================

class InvalidRescuerError(FloodGuardError):
    """Raised when a rescue is claimed by a rescuer id that is not on the roster"""

    def __init__(
        self,
        message: str,
        rescuer_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if rescuer_id:
            details["rescuer_id"] = rescuer_id

        super().__init__(
            message=message,
            code="ATTR_001",
            details=details,
            **kwargs,
        )


class AllocationError(FloodGuardError):
    """Raised when no free rescuer id is left to allocate"""

    def __init__(
        self,
        message: str,
        roster_size: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if roster_size is not None:
            details["roster_size"] = roster_size

        super().__init__(
            message=message,
            code="ATTR_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION / ACCESS EXCEPTIONS
# =============================================================================

class ConfigurationError(FloodGuardError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


class AuthorizationError(FloodGuardError):
    """Raised when an administrative operation is attempted without logging in"""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="AUTH_001",
            details=details,
            **kwargs,
        )
