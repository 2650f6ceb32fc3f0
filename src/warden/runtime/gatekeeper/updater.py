"""Promote "always allow" confirmation outcomes into policy rules."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from warden.runtime.gatekeeper.models import (
    ConfirmationOutcome,
    ExecConfirmation,
    McpConfirmation,
)
from warden.runtime.policy.models import ALWAYS_ALLOW_PRIORITY, PolicyDecision, PolicyRule

if TYPE_CHECKING:
    from warden.runtime.gatekeeper.models import ConfirmationDetails
    from warden.runtime.policy.engine import PolicyEngine

logger = logging.getLogger(__name__)


def rule_for_outcome(
    tool_name: str,
    details: ConfirmationDetails,
    outcome: ConfirmationOutcome,
) -> PolicyRule | None:
    """Return the ALLOW rule an outcome implies, or ``None``."""
    if outcome == ConfirmationOutcome.PROCEED_ALWAYS_SERVER:
        if not isinstance(details, McpConfirmation):
            return None
        return PolicyRule(
            tool_name=f"{details.server_name}__*",
            decision=PolicyDecision.ALLOW,
            priority=ALWAYS_ALLOW_PRIORITY,
            source="session:always_allow_server",
        )

    if outcome not in (ConfirmationOutcome.PROCEED_ALWAYS, ConfirmationOutcome.PROCEED_ALWAYS_TOOL):
        return None

    args_pattern = None
    if isinstance(details, ExecConfirmation) and details.root_command:
        # Scope to the root command: "git" allows "git status" but not "gitx".
        root = re.escape(details.root_command)
        args_pattern = re.compile(f'"command":"{root}(?:[\\s"]|$)')
    return PolicyRule(
        tool_name=tool_name,
        args_pattern=args_pattern,
        decision=PolicyDecision.ALLOW,
        priority=ALWAYS_ALLOW_PRIORITY,
        source="session:always_allow",
    )


def update_policy_after_confirmation(
    engine: PolicyEngine,
    tool_name: str,
    details: ConfirmationDetails,
    outcome: ConfirmationOutcome,
) -> PolicyRule | None:
    """Add the rule implied by *outcome* to *engine* and return it."""
    rule = rule_for_outcome(tool_name, details, outcome)
    if rule is not None:
        logger.info("Always-allow rule added for %s (%s)", rule.tool_name, outcome.value)
        engine.add_rule(rule)
    return rule
