"""Runtime safety layer — policy evaluation, confirmation and tool scheduling."""

from warden.runtime.errors import (
    ApprovalDeniedError,
    ApprovalTimeoutError,
    OperationCancelledError,
    PolicyConfigError,
    RuntimeSafetyError,
)

__all__ = [
    "ApprovalDeniedError",
    "ApprovalTimeoutError",
    "OperationCancelledError",
    "PolicyConfigError",
    "RuntimeSafetyError",
]
