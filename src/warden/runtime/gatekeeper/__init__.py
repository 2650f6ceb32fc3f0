"""Gatekeeper subsystem — human-in-the-loop confirmation of tool calls."""

from warden.runtime.gatekeeper.gatekeeper import (
    AutoApproveGatekeeper,
    AutoRejectGatekeeper,
    CLIGatekeeper,
    ConfirmationHandler,
)
from warden.runtime.gatekeeper.models import (
    ConfirmationDetails,
    ConfirmationOutcome,
    ConfirmationRequest,
    EditConfirmation,
    ExecConfirmation,
    InfoConfirmation,
    McpConfirmation,
)
from warden.runtime.gatekeeper.updater import update_policy_after_confirmation

__all__ = [
    "AutoApproveGatekeeper",
    "AutoRejectGatekeeper",
    "CLIGatekeeper",
    "ConfirmationDetails",
    "ConfirmationHandler",
    "ConfirmationOutcome",
    "ConfirmationRequest",
    "EditConfirmation",
    "ExecConfirmation",
    "InfoConfirmation",
    "McpConfirmation",
    "update_policy_after_confirmation",
]
