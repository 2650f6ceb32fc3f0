"""Policy file loading.

Policy files live in one directory per trust tier and hold a top-level
``rule`` array::

    [[rule]]
    tool_name = "run_shell_command"
    command_prefix = ["git status", "git diff"]
    decision = "allow"
    priority = 100

TOML (``*.toml``) and YAML (``*.yaml`` / ``*.yml``) files share the same
schema.  Bad input never raises: an unreadable or unparsable file is
skipped, an invalid rule is skipped while its valid siblings load, and each
rejection is reported as a :class:`PolicyFileError`.
"""

from __future__ import annotations

import logging
import re
import tomllib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from warden.runtime.policy.models import (
    ApprovalMode,
    PolicyDecision,
    PolicyFileError,
    PolicyFileErrorType,
    PolicyLoadResult,
    PolicyRule,
    tier_name,
    transform_priority,
)

logger = logging.getLogger(__name__)

POLICY_FILE_SUFFIXES = (".toml", ".yaml", ".yml")
SHELL_TOOL_NAME = "run_shell_command"

_SCHEMA_SUGGESTION = "Ensure all required fields (decision, priority) are present with correct types"
_REGEX_SUGGESTION = (
    "Check regex syntax for errors like unmatched brackets or invalid escape sequences"
)


class PolicyRuleSpec(BaseModel):
    """One rule as written in a policy file, before transformation."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    tool_name: str | list[str] | None = Field(default=None, alias="toolName")
    mcp_name: str | None = Field(default=None, alias="mcpName")
    args_pattern: str | None = Field(default=None, alias="argsPattern")
    command_prefix: str | list[str] | None = Field(default=None, alias="commandPrefix")
    command_regex: str | None = Field(default=None, alias="commandRegex")
    decision: PolicyDecision
    priority: int = Field(
        ge=0,
        le=999,
        description="Raw in-file priority; values >= 1000 would jump to the next tier.",
    )
    modes: list[ApprovalMode] | None = None


class _RuleRejected(Exception):
    def __init__(
        self,
        error_type: PolicyFileErrorType,
        message: str,
        details: str = "",
        suggestion: str = "",
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details
        self.suggestion = suggestion


def _format_schema_error(exc: ValidationError, rule_index: int) -> str:
    issues = "\n".join(
        f'  - Field "{".".join(str(p) for p in err["loc"])}": {err["msg"]}' for err in exc.errors()
    )
    return f"Invalid policy rule (rule #{rule_index + 1}):\n{issues}"


def _validate_rule(entry: PolicyRuleSpec, rule_index: int) -> None:
    """Check cross-field constraints the schema cannot express."""
    n = rule_index + 1
    has_prefix = entry.command_prefix is not None
    has_regex = entry.command_regex is not None

    if has_prefix or has_regex:
        if entry.tool_name != SHELL_TOOL_NAME:
            raise _RuleRejected(
                "rule_validation",
                "Invalid shell command syntax",
                f"Rule #{n}: command_prefix and command_regex can only be used with "
                f'tool_name = "{SHELL_TOOL_NAME}"\n  Found: tool_name = {entry.tool_name!r}',
                f'Set tool_name = "{SHELL_TOOL_NAME}" (not a list)',
            )
        if entry.args_pattern is not None:
            raise _RuleRejected(
                "rule_validation",
                "Invalid shell command syntax",
                f"Rule #{n}: cannot use both command_prefix/command_regex and args_pattern",
                "Use either command_prefix/command_regex or args_pattern, not both",
            )
        if has_prefix and has_regex:
            raise _RuleRejected(
                "rule_validation",
                "Invalid shell command syntax",
                f"Rule #{n}: cannot use both command_prefix and command_regex",
                "Use either command_prefix or command_regex, not both",
            )

    names = entry.tool_name if isinstance(entry.tool_name, list) else [entry.tool_name]
    for name in names:
        if name is not None and "*" in name[:-1]:
            raise _RuleRejected(
                "rule_validation",
                "Invalid tool name pattern",
                f"Rule #{n}: {name!r} uses '*' before the end of the name",
                "Only a single trailing '*' is supported, e.g. 'server__*'",
            )


def _args_patterns(entry: PolicyRuleSpec) -> list[str | None]:
    if entry.command_prefix is not None:
        prefixes = (
            entry.command_prefix if isinstance(entry.command_prefix, list) else [entry.command_prefix]
        )
        return [f'"command":"{re.escape(prefix)}' for prefix in prefixes]
    if entry.command_regex is not None:
        return [f'"command":"{entry.command_regex}']
    return [entry.args_pattern]


def _tool_names(entry: PolicyRuleSpec) -> list[str | None]:
    names: list[str | None]
    if entry.tool_name is None:
        names = [None]
    elif isinstance(entry.tool_name, list):
        names = list(entry.tool_name)
    else:
        names = [entry.tool_name]

    if entry.mcp_name is None:
        return names
    return [f"{entry.mcp_name}__{name}" if name else f"{entry.mcp_name}__*" for name in names]


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise _RuleRejected(
            "regex_compilation",
            "Invalid regex pattern",
            f"Pattern: {pattern}\nError: {exc}",
            _REGEX_SUGGESTION,
        ) from exc


def build_rules(entry: PolicyRuleSpec, tier: int, source: str) -> list[PolicyRule]:
    """Expand one validated rule entry into engine rules for *tier*."""
    priority = transform_priority(entry.priority, tier)
    rules: list[PolicyRule] = []
    for pattern in _args_patterns(entry):
        compiled = _compile(pattern) if pattern is not None else None
        for name in _tool_names(entry):
            rules.append(
                PolicyRule(
                    tool_name=name,
                    args_pattern=compiled,
                    decision=entry.decision,
                    priority=priority,
                    source=source,
                )
            )
    return rules


def _parse(path: Path, text: str) -> Any:
    if path.suffix == ".toml":
        return tomllib.loads(text)
    return yaml.safe_load(text)


def load_policy_file(
    path: Path,
    tier: int,
    approval_mode: ApprovalMode = ApprovalMode.DEFAULT,
) -> PolicyLoadResult:
    """Load the rules of a single policy file for *tier*."""
    result = PolicyLoadResult()
    tname = tier_name(tier)

    def error(
        error_type: PolicyFileErrorType,
        message: str,
        details: str = "",
        suggestion: str = "",
        rule_index: int | None = None,
    ) -> None:
        result.errors.append(
            PolicyFileError(
                file_path=str(path),
                file_name=path.name,
                tier=tname,
                rule_index=rule_index,
                error_type=error_type,
                message=message,
                details=details,
                suggestion=suggestion,
            )
        )

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        error("file_read", "Failed to read policy file", str(exc))
        return result

    try:
        data = _parse(path, text)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        error(
            "parse",
            f"{path.suffix.lstrip('.').upper()} parsing failed",
            str(exc),
            "Check for syntax errors like missing quotes, brackets, or commas",
        )
        return result

    if data is None:
        return result
    if not isinstance(data, dict) or not isinstance(data.get("rule", []), list):
        error(
            "schema_validation",
            "Schema validation failed",
            "A policy file must be a mapping with a top-level 'rule' array",
            _SCHEMA_SUGGESTION,
        )
        return result

    source = f"{tname}:{path.name}"
    for index, raw in enumerate(data.get("rule", [])):
        try:
            entry = PolicyRuleSpec.model_validate(raw)
        except ValidationError as exc:
            error(
                "schema_validation",
                "Schema validation failed",
                _format_schema_error(exc, index),
                _SCHEMA_SUGGESTION,
                index,
            )
            continue

        try:
            _validate_rule(entry, index)
            if entry.modes and approval_mode not in entry.modes:
                continue
            result.rules.extend(build_rules(entry, tier, source))
        except _RuleRejected as exc:
            error(exc.error_type, exc.message, exc.details, exc.suggestion, index)

    return result


def load_policy_files(
    directories: Iterable[tuple[Path, int]],
    approval_mode: ApprovalMode = ApprovalMode.DEFAULT,
) -> PolicyLoadResult:
    """Load every policy file from each ``(directory, tier)`` pair.

    Missing directories are skipped silently.  Files are visited in sorted
    name order so rule insertion order is reproducible.
    """
    result = PolicyLoadResult()
    for directory, tier in directories:
        if not directory.exists():
            continue
        try:
            files = sorted(
                p for p in directory.iterdir() if p.is_file() and p.suffix in POLICY_FILE_SUFFIXES
            )
        except OSError as exc:
            result.errors.append(
                PolicyFileError(
                    file_path=str(directory),
                    file_name=directory.name,
                    tier=tier_name(tier),
                    error_type="file_read",
                    message="Failed to read policy directory",
                    details=str(exc),
                )
            )
            continue

        for path in files:
            loaded = load_policy_file(path, tier, approval_mode)
            logger.debug(
                "Loaded %d policy rules from %s (%d errors)",
                len(loaded.rules),
                path,
                len(loaded.errors),
            )
            result.rules.extend(loaded.rules)
            result.errors.extend(loaded.errors)
    return result


def format_policy_error(error: PolicyFileError) -> str:
    """Render a diagnostic as a multi-line human-readable message."""
    location = error.file_name
    if error.rule_index is not None:
        location += f" (rule #{error.rule_index + 1})"
    lines = [f"[{error.tier}] {location}: {error.message} ({error.error_type})"]
    if error.details:
        lines.extend(f"  {line}" for line in error.details.splitlines())
    if error.suggestion:
        lines.append(f"  Suggestion: {error.suggestion}")
    return "\n".join(lines)
