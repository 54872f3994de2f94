"""
DualChat Error Handling Framework.

Categorizes errors for consistent handling in the session flow:
- CANCELLED: User stopped the session, end quietly
- CREDENTIAL: Missing or rejected key, reported on the credential side channel
- TRANSIENT: Model call failed, retried with backoff, then left for manual retry

Only CANCELLED and CREDENTIAL end a session without leaving a resumable
failed step behind.
"""

from enum import Enum
from typing import Any, Optional

from ..utils import console


class ErrorCategory(Enum):
    """Classifies errors for handling decisions."""
    CANCELLED = "cancelled"
    CREDENTIAL = "credential"
    TRANSIENT = "transient"


class DualChatError(Exception):
    """Base exception for DualChat errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.category = category
        self.context = context or {}
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"[{self.category.value.upper()}] {self.message}"]
        if self.original_error:
            parts.append(f"Cause: {str(self.original_error)}")
        return "\n".join(parts)


class SessionCancelled(DualChatError):
    """The user stopped the session."""

    def __init__(self, message: str = "Session cancelled by user", context: Optional[dict[str, Any]] = None):
        super().__init__(message, ErrorCategory.CANCELLED, context)


class CredentialError(DualChatError):
    """API key missing or rejected. Never retried automatically."""

    def __init__(
        self,
        message: str,
        kind: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCategory.CREDENTIAL, context, original_error)
        self.kind = kind


class StepFailedError(DualChatError):
    """
    Automatic retries for a step were exhausted.

    ``handled`` is True once the failure has been reported to the user and the
    failed step has been stored for manual retry, so callers must not report
    it again.
    """

    def __init__(
        self,
        message: str,
        step: Any = None,
        handled: bool = False,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCategory.TRANSIENT, context, original_error)
        self.step = step
        self.handled = handled


def handle_error(error: DualChatError, action_name: str = "operation") -> bool:
    """
    Report an error on the console based on its category.

    Args:
        error: DualChatError to handle
        action_name: Name of action that failed (for logging)

    Returns:
        True if the caller can offer a manual retry, False otherwise
    """
    if error.category == ErrorCategory.CANCELLED:
        console.info(f"{action_name} stopped by user")
        return False

    elif error.category == ErrorCategory.CREDENTIAL:
        console.error(f"Credential problem in {action_name}:")
        console.error(str(error))
        return False

    elif error.category == ErrorCategory.TRANSIENT:
        if isinstance(error, StepFailedError) and error.handled:
            console.warning(f"{action_name} paused: use /retry to try the failed step again")
            return True
        console.warning(f"Transient error in {action_name}: {error.message}")
        return False

    return False
