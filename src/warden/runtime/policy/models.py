"""Data models for the policy subsystem."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Policy tiers.  Effective priority is ``tier + raw_priority / 1000``.
DEFAULT_POLICY_TIER = 1
USER_POLICY_TIER = 2
ADMIN_POLICY_TIER = 3

MAX_RAW_PRIORITY = 999

# Fixed effective priorities for settings-derived and dynamic rules (user tier).
ALWAYS_ALLOW_PRIORITY = 2.95
MCP_EXCLUDED_PRIORITY = 2.9
TOOLS_EXCLUDED_PRIORITY = 2.4
TOOLS_ALLOWED_PRIORITY = 2.3
MCP_TRUSTED_PRIORITY = 2.2
MCP_ALLOWED_PRIORITY = 2.1

TierName = Literal["default", "user", "admin"]

_TIER_NAMES: dict[int, TierName] = {
    DEFAULT_POLICY_TIER: "default",
    USER_POLICY_TIER: "user",
    ADMIN_POLICY_TIER: "admin",
}


class PolicyDecision(str, Enum):
    """Outcome of evaluating a tool call against the policy."""

    ALLOW = "allow"
    DENY = "deny"
    ASK_USER = "ask_user"


class ApprovalMode(str, Enum):
    """Session-wide approval mode used to filter mode-specific policy rules."""

    DEFAULT = "default"
    AUTO_EDIT = "autoEdit"
    YOLO = "yolo"


def transform_priority(priority: float, tier: int) -> float:
    """Map a raw in-file priority into its tier band.

    Raises:
        ValueError: If *priority* is outside ``[0, 999]`` or *tier* is unknown.
    """
    if tier not in _TIER_NAMES:
        msg = f"unknown policy tier {tier}"
        raise ValueError(msg)
    if not 0 <= priority <= MAX_RAW_PRIORITY:
        msg = f"priority {priority} outside [0, {MAX_RAW_PRIORITY}] would leak into another tier"
        raise ValueError(msg)
    return tier + priority / 1000


def tier_name(tier: int) -> TierName:
    return _TIER_NAMES.get(tier, "default")


def tier_of(priority: float) -> int:
    """Return the tier an effective priority belongs to (0 for unbanded rules)."""
    return int(priority) if 1 <= priority < 4 else 0


class PolicyRule(BaseModel):
    """A single immutable policy rule.

    ``tool_name`` is an exact name, a prefix glob with one trailing ``*``
    (``server__*`` for MCP servers), or ``None`` to match every tool.
    ``priority`` is the *effective* priority (already tier-transformed).
    """

    model_config = ConfigDict(frozen=True)

    tool_name: str | None = None
    args_pattern: re.Pattern[str] | None = None
    decision: PolicyDecision
    priority: float = 0.0
    source: str = ""


class PolicyEngineConfig(BaseModel):
    """Rules plus fallback behaviour for a :class:`PolicyEngine`."""

    rules: list[PolicyRule] = Field(default_factory=list)
    default_decision: PolicyDecision = PolicyDecision.ASK_USER
    non_interactive: bool = Field(
        default=False,
        description="Turn every ASK_USER outcome into DENY (no human available).",
    )


class CheckResult(BaseModel):
    """The decision for one tool call and the rule that produced it."""

    decision: PolicyDecision
    rule: PolicyRule | None = None


class ToolsSettings(BaseModel):
    allowed: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


class McpSettings(BaseModel):
    allowed: list[str] = Field(default_factory=list)
    excluded: list[str] = Field(default_factory=list)


class McpServerSettings(BaseModel):
    trust: bool = False


class PolicySettings(BaseModel):
    """User settings that translate into synthetic user-tier rules."""

    tools: ToolsSettings = Field(default_factory=ToolsSettings)
    mcp: McpSettings = Field(default_factory=McpSettings)
    mcp_servers: dict[str, McpServerSettings] = Field(default_factory=dict)


class PolicyDirectories(BaseModel):
    """Where policy files are read from, one directory per tier."""

    default: Path | None = None
    user: Path | None = None
    admin: Path | None = None


PolicyFileErrorType = Literal[
    "file_read",
    "parse",
    "schema_validation",
    "rule_validation",
    "regex_compilation",
]


class PolicyFileError(BaseModel):
    """A diagnostic for one rejected policy file or rule."""

    file_path: str
    file_name: str
    tier: TierName
    rule_index: int | None = None
    error_type: PolicyFileErrorType
    message: str
    details: str = ""
    suggestion: str = ""


class PolicyLoadResult(BaseModel):
    """Rules that loaded successfully and diagnostics for those that did not."""

    rules: list[PolicyRule] = Field(default_factory=list)
    errors: list[PolicyFileError] = Field(default_factory=list)
