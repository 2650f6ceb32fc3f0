"""Shared error types for the runtime safety layer."""


class RuntimeSafetyError(Exception):
    """Base error for all runtime safety failures."""


class PolicyConfigError(RuntimeSafetyError):
    """A policy rule or policy configuration is invalid."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Invalid policy configuration" + (f": {detail}" if detail else ""))


class ApprovalDeniedError(RuntimeSafetyError):
    """A tool call was rejected by policy or by the user."""

    def __init__(self, tool_name: str, reason: str = "") -> None:
        self.tool_name = tool_name
        self.reason = reason
        msg = f"Approval denied for tool: {tool_name}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ApprovalTimeoutError(RuntimeSafetyError):
    """The gatekeeper timed out waiting for user input."""

    def __init__(self, tool_name: str, timeout: float) -> None:
        self.tool_name = tool_name
        self.timeout = timeout
        super().__init__(f"Approval timed out for tool: {tool_name} after {timeout}s")


class OperationCancelledError(RuntimeSafetyError):
    """A cancellation signal fired before the operation finished."""

    def __init__(self, reason: str = "Operation cancelled.") -> None:
        self.reason = reason
        super().__init__(reason)
