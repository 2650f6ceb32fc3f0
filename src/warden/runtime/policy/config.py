"""Build a :class:`PolicyEngineConfig` from policy files and user settings.

Effective priority bands::

    3.xxx  admin policy files
    2.95   interactive "always allow" choices (added at runtime)
    2.9    settings: mcp.excluded servers          DENY
    2.4    settings: tools.exclude                 DENY
    2.3    settings: tools.allowed                 ALLOW
    2.2    settings: mcp_servers.<name>.trust      ALLOW
    2.1    settings: mcp.allowed servers           ALLOW
    2.xxx  user policy files
    1.xxx  bundled default policy files
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from warden.runtime.errors import PolicyConfigError
from warden.runtime.policy.engine import check_rule_pattern
from warden.runtime.policy.loader import format_policy_error, load_policy_files
from warden.runtime.policy.models import (
    ADMIN_POLICY_TIER,
    DEFAULT_POLICY_TIER,
    MCP_ALLOWED_PRIORITY,
    MCP_EXCLUDED_PRIORITY,
    MCP_TRUSTED_PRIORITY,
    TOOLS_ALLOWED_PRIORITY,
    TOOLS_EXCLUDED_PRIORITY,
    USER_POLICY_TIER,
    ApprovalMode,
    PolicyDecision,
    PolicyDirectories,
    PolicyEngineConfig,
    PolicyFileError,
    PolicyLoadResult,
    PolicyRule,
    PolicySettings,
    tier_name,
)

logger = logging.getLogger(__name__)

DEFAULT_POLICIES_DIR = Path(__file__).parent / "policies"
SYSTEM_POLICIES_ENV = "WARDEN_SYSTEM_POLICIES_DIR"
_SYSTEM_POLICIES_DIR = Path("/etc/warden/policies")


def user_policies_dir() -> Path:
    return Path.home() / ".warden" / "policies"


def system_policies_dir() -> Path:
    override = os.environ.get(SYSTEM_POLICIES_ENV)
    return Path(override) if override else _SYSTEM_POLICIES_DIR


def get_policy_directories(default_dir: Path | None = None) -> PolicyDirectories:
    """Return the standard tier directories, optionally overriding the bundled one."""
    return PolicyDirectories(
        default=default_dir or DEFAULT_POLICIES_DIR,
        user=user_policies_dir(),
        admin=system_policies_dir(),
    )


def tiered_directories(directories: PolicyDirectories) -> list[tuple[Path, int]]:
    pairs = [
        (directories.default, DEFAULT_POLICY_TIER),
        (directories.user, USER_POLICY_TIER),
        (directories.admin, ADMIN_POLICY_TIER),
    ]
    return [(path, tier) for path, tier in pairs if path is not None]


def _settings_entries(settings: PolicySettings) -> list[tuple[str, str, PolicyDecision, float]]:
    """(source, tool-name pattern, decision, priority) for every settings entry."""
    entries = [
        ("settings:mcp.excluded", f"{server}__*", PolicyDecision.DENY, MCP_EXCLUDED_PRIORITY)
        for server in settings.mcp.excluded
    ]
    entries += [
        ("settings:tools.exclude", tool, PolicyDecision.DENY, TOOLS_EXCLUDED_PRIORITY)
        for tool in settings.tools.exclude
    ]
    entries += [
        ("settings:tools.allowed", tool, PolicyDecision.ALLOW, TOOLS_ALLOWED_PRIORITY)
        for tool in settings.tools.allowed
    ]
    entries += [
        (
            f"settings:mcp_servers.{server}.trust",
            f"{server}__*",
            PolicyDecision.ALLOW,
            MCP_TRUSTED_PRIORITY,
        )
        for server, server_settings in settings.mcp_servers.items()
        if server_settings.trust
    ]
    entries += [
        ("settings:mcp.allowed", f"{server}__*", PolicyDecision.ALLOW, MCP_ALLOWED_PRIORITY)
        for server in settings.mcp.allowed
    ]
    return entries


def settings_rules(settings: PolicySettings) -> PolicyLoadResult:
    """Translate user settings into synthetic user-tier rules.

    An entry whose name is not a valid tool pattern is dropped and reported
    as a ``rule_validation`` diagnostic; the remaining entries still apply.
    """
    result = PolicyLoadResult()
    for index, (source, pattern, decision, priority) in enumerate(_settings_entries(settings)):
        rule = PolicyRule(tool_name=pattern, decision=decision, priority=priority, source=source)
        try:
            check_rule_pattern(rule)
        except PolicyConfigError as exc:
            result.errors.append(
                PolicyFileError(
                    file_path="settings",
                    file_name=source,
                    tier=tier_name(USER_POLICY_TIER),
                    rule_index=index,
                    error_type="rule_validation",
                    message="Invalid tool name pattern",
                    details=str(exc),
                    suggestion="Only a single trailing '*' is supported, e.g. 'server__*'",
                )
            )
            continue
        result.rules.append(rule)
    return result


def create_policy_engine_config(
    settings: PolicySettings | None = None,
    approval_mode: ApprovalMode = ApprovalMode.DEFAULT,
    directories: PolicyDirectories | None = None,
    *,
    non_interactive: bool = False,
) -> tuple[PolicyEngineConfig, list[PolicyFileError]]:
    """Load tier files, merge settings rules and return the config plus diagnostics."""
    settings = settings or PolicySettings()
    directories = directories or get_policy_directories()

    loaded = load_policy_files(tiered_directories(directories), approval_mode)
    synthetic = settings_rules(settings)
    errors = [*loaded.errors, *synthetic.errors]
    for error in errors:
        logger.warning("%s", format_policy_error(error))

    rules = [*loaded.rules, *synthetic.rules]
    logger.debug(
        "Policy config built: %d file rules, %d settings rules, mode=%s",
        len(loaded.rules),
        len(rules) - len(loaded.rules),
        approval_mode.value,
    )
    config = PolicyEngineConfig(
        rules=rules,
        default_decision=PolicyDecision.ASK_USER,
        non_interactive=non_interactive,
    )
    return config, errors
