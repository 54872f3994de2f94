"""
DualChat Infrastructure Layer.

Error categories and the console error handler shared by the runtime and the CLI.
"""

from .errors import (
    CredentialError,
    DualChatError,
    ErrorCategory,
    SessionCancelled,
    StepFailedError,
    handle_error,
)

__all__ = [
    "CredentialError",
    "DualChatError",
    "ErrorCategory",
    "SessionCancelled",
    "StepFailedError",
    "handle_error",
]
