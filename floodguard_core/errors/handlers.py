# =============================================================================
# floodguard_core/errors/handlers.py
# Error Handling Utilities for FloodGuard
# =============================================================================

from __future__ import annotations
import traceback
from typing import Optional

from floodguard_core.logging import get_logger
from .exceptions import FloodGuardError

logger = get_logger(__name__)


def handle_error(
    error: Exception,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> str:
    """
    Centralized error handling function.

    The engine has no UI of its own, so handling means logging the error with
    its code and details and returning the message the collaborator should show.

    Args:
        error: The exception to handle
        log_error: Whether to log the error
        user_message: Custom message to show user (uses error message if None)

    Returns:
        Message suitable for display
    """
    if isinstance(error, FloodGuardError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        if recoverable:
            logger.warning(f"[{code}] {message}", extra={"details": details})
        else:
            logger.error(
                f"[{code}] {message}",
                extra={"details": details},
                exc_info=True,
            )

    if recoverable:
        return f"Error: {message}"
    return f"Critical Error: {message}. Please contact support."


class ErrorContext:
    """
    Context manager for error handling with automatic logging.

    Usage:
        with ErrorContext("Refreshing SOS board", recoverable=True):
            orchestrator.refresh()

        # On error, logs "Error during: Refreshing SOS board"
    """

    def __init__(self, operation: str, recoverable: bool = True):
        self.operation = operation
        self.recoverable = recoverable
        self.error: Optional[BaseException] = None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.error = exc_val
            if isinstance(exc_val, FloodGuardError):
                handle_error(exc_val)
            else:
                handle_error(
                    exc_val,
                    user_message=f"Error during: {self.operation}",
                )

            # Suppress exception if recoverable
            return self.recoverable

        logger.debug(f"Completed: {self.operation}")
        return False
