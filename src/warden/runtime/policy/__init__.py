"""Policy subsystem — tiered rules deciding whether a tool call may run."""

from warden.runtime.policy.config import (
    create_policy_engine_config,
    get_policy_directories,
    settings_rules,
)
from warden.runtime.policy.engine import PolicyEngine, stable_stringify
from warden.runtime.policy.loader import (
    format_policy_error,
    load_policy_file,
    load_policy_files,
)
from warden.runtime.policy.models import (
    ADMIN_POLICY_TIER,
    ALWAYS_ALLOW_PRIORITY,
    DEFAULT_POLICY_TIER,
    USER_POLICY_TIER,
    ApprovalMode,
    CheckResult,
    PolicyDecision,
    PolicyDirectories,
    PolicyEngineConfig,
    PolicyFileError,
    PolicyLoadResult,
    PolicyRule,
    PolicySettings,
    transform_priority,
)

__all__ = [
    "ADMIN_POLICY_TIER",
    "ALWAYS_ALLOW_PRIORITY",
    "DEFAULT_POLICY_TIER",
    "USER_POLICY_TIER",
    "ApprovalMode",
    "CheckResult",
    "PolicyDecision",
    "PolicyDirectories",
    "PolicyEngine",
    "PolicyEngineConfig",
    "PolicyFileError",
    "PolicyLoadResult",
    "PolicyRule",
    "PolicySettings",
    "create_policy_engine_config",
    "format_policy_error",
    "get_policy_directories",
    "load_policy_file",
    "load_policy_files",
    "settings_rules",
    "stable_stringify",
    "transform_priority",
]
