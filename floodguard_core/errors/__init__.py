# =============================================================================
# floodguard_core/errors/__init__.py
# Centralized Error Handling for FloodGuard
# =============================================================================

from .exceptions import (
    FloodGuardError,
    RemoteMirrorError,
    LocalStoreError,
    RecordNotFoundError,
    InvalidTransitionError,
    InvalidRescuerError,
    AllocationError,
    ConfigurationError,
    AuthorizationError,
)

from .handlers import (
    handle_error,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "FloodGuardError",
    "RemoteMirrorError",
    "LocalStoreError",
    "RecordNotFoundError",
    "InvalidTransitionError",
    "InvalidRescuerError",
    "AllocationError",
    "ConfigurationError",
    "AuthorizationError",
    # Handlers
    "handle_error",
    "ErrorContext",
]
