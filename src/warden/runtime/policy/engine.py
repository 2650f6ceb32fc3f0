"""PolicyEngine — resolves a tool call to ALLOW, DENY or ASK_USER.

Pure logic, no I/O.  Every rule whose tool-name pattern and argument
pattern match the call is a candidate; the candidate with the highest
effective priority wins.  Ties are broken by how specific the tool-name
match is, then by the order the rules were added (earliest wins).  With
no candidate the configured ``default_decision`` applies.

The rule store is append-only: :meth:`PolicyEngine.add_rule` is the only
mutation and affects every later evaluation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from warden.runtime.errors import PolicyConfigError
from warden.runtime.policy.models import (
    CheckResult,
    PolicyDecision,
    PolicyEngineConfig,
    PolicyRule,
)

logger = logging.getLogger(__name__)

MCP_WILDCARD_SUFFIX = "__*"


def stable_stringify(args: Mapping[str, Any]) -> str:
    """Serialize call arguments canonically (sorted keys, compact separators)."""
    return json.dumps(args, sort_keys=True, separators=(",", ":"), default=str)


def name_specificity(pattern: str | None) -> tuple[int, int]:
    """Rank a tool-name pattern: exact > prefix glob > ``*`` > none.

    Prefix globs rank among themselves by prefix length, so ``read_*``
    outranks ``re*``.
    """
    if pattern is None:
        return (0, 0)
    if pattern == "*":
        return (1, 0)
    if pattern.endswith("*"):
        return (2, len(pattern) - 1)
    return (3, 0)


def tool_name_matches(pattern: str | None, tool_name: str, server_name: str | None = None) -> bool:
    """Check whether a rule's tool-name *pattern* covers *tool_name*.

    ``server__*`` patterns additionally require *server_name*, when known,
    to equal ``server`` so a server cannot spoof another by naming its
    tools ``trusted__...``.
    """
    if pattern is None or pattern == "*":
        return True
    if pattern.endswith(MCP_WILDCARD_SUFFIX):
        prefix = pattern[: -len(MCP_WILDCARD_SUFFIX)]
        if server_name is not None and server_name != prefix:
            return False
        return tool_name.startswith(prefix + "__")
    if pattern.endswith("*"):
        return tool_name.startswith(pattern[:-1])
    return tool_name == pattern


def check_rule_pattern(rule: PolicyRule) -> None:
    """Raise :class:`PolicyConfigError` if ``*`` appears before the end of the tool name."""
    if rule.tool_name is not None and "*" in rule.tool_name[:-1]:
        raise PolicyConfigError(f"tool name pattern {rule.tool_name!r} may only end in '*'")


class PolicyEngine:
    """Evaluate tool calls against a :class:`PolicyEngineConfig`."""

    def __init__(self, config: PolicyEngineConfig | None = None) -> None:
        self._config = config or PolicyEngineConfig()
        for rule in self._config.rules:
            check_rule_pattern(rule)
        self._rules: list[PolicyRule] = list(self._config.rules)

    @property
    def config(self) -> PolicyEngineConfig:
        return self._config

    @property
    def default_decision(self) -> PolicyDecision:
        return self._config.default_decision

    @property
    def non_interactive(self) -> bool:
        return self._config.non_interactive

    @property
    def rules(self) -> tuple[PolicyRule, ...]:
        """All rules, highest precedence first."""
        ranked = sorted(
            enumerate(self._rules),
            key=lambda item: (item[1].priority, name_specificity(item[1].tool_name), -item[0]),
            reverse=True,
        )
        return tuple(rule for _, rule in ranked)

    def add_rule(self, rule: PolicyRule) -> None:
        """Append *rule*; existing rules are never removed or reordered."""
        check_rule_pattern(rule)
        logger.debug(
            "Adding policy rule: tool=%s decision=%s priority=%s source=%s",
            rule.tool_name,
            rule.decision.value,
            rule.priority,
            rule.source,
        )
        self._rules.append(rule)

    def evaluate(
        self,
        tool_name: str,
        args: Mapping[str, Any] | None = None,
        *,
        server_name: str | None = None,
    ) -> PolicyDecision:
        """Return the decision for calling *tool_name* with *args*."""
        return self.check(tool_name, args, server_name=server_name).decision

    def check(
        self,
        tool_name: str,
        args: Mapping[str, Any] | None = None,
        *,
        server_name: str | None = None,
    ) -> CheckResult:
        """Return the decision and the winning rule (``None`` for the default)."""
        stringified: str | None = None
        if args and any(rule.args_pattern is not None for rule in self._rules):
            stringified = stable_stringify(args)

        best: PolicyRule | None = None
        best_key: tuple[float, tuple[int, int]] | None = None
        for rule in self._rules:
            if not self._matches(rule, tool_name, stringified, server_name):
                continue
            key = (rule.priority, name_specificity(rule.tool_name))
            # Strictly greater keeps the earliest rule on a full tie.
            if best_key is None or key > best_key:
                best, best_key = rule, key

        if best is None:
            logger.debug("No policy rule matched %s; default %s", tool_name, self.default_decision.value)
            return CheckResult(decision=self._apply_non_interactive(self.default_decision))

        logger.debug(
            "Policy rule matched %s: pattern=%s decision=%s priority=%s",
            tool_name,
            best.tool_name,
            best.decision.value,
            best.priority,
        )
        return CheckResult(decision=self._apply_non_interactive(best.decision), rule=best)

    @staticmethod
    def _matches(
        rule: PolicyRule,
        tool_name: str,
        stringified_args: str | None,
        server_name: str | None,
    ) -> bool:
        if not tool_name_matches(rule.tool_name, tool_name, server_name):
            return False
        if rule.args_pattern is not None:
            if stringified_args is None:
                return False
            return rule.args_pattern.search(stringified_args) is not None
        return True

    def _apply_non_interactive(self, decision: PolicyDecision) -> PolicyDecision:
        if self._config.non_interactive and decision == PolicyDecision.ASK_USER:
            return PolicyDecision.DENY
        return decision
