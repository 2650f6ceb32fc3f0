"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from warden.runtime.policy.loader import format_policy_error
from warden.runtime.policy.models import PolicyDecision, tier_name, tier_of

if TYPE_CHECKING:
    from collections.abc import Sequence

    from warden.core.agents.models import ActivityEvent, AgentOutput
    from warden.runtime.policy.models import CheckResult, PolicyFileError, PolicyRule

console = Console()

_DECISION_STYLES = {
    PolicyDecision.ALLOW: "green",
    PolicyDecision.DENY: "red",
    PolicyDecision.ASK_USER: "yellow",
}


def print_rules_table(rules: Sequence[PolicyRule]) -> None:
    """Pretty-print policy rules in evaluation order."""
    table = Table(title="Effective Policy Rules")
    table.add_column("Priority", justify="right")
    table.add_column("Tier")
    table.add_column("Tool", style="cyan")
    table.add_column("Args Pattern")
    table.add_column("Decision")
    table.add_column("Source")

    for rule in rules:
        tier = tier_of(rule.priority)
        table.add_row(
            f"{rule.priority:.3f}",
            tier_name(tier) if tier else "-",
            rule.tool_name or "*",
            _truncate(rule.args_pattern.pattern, 40) if rule.args_pattern else "-",
            _decision(rule.decision),
            _truncate(rule.source, 50),
        )

    console.print(table)


def print_policy_errors(errors: Sequence[PolicyFileError]) -> None:
    """Print load diagnostics, one block per rejected file or rule."""
    if not errors:
        return
    console.print(f"\n[bold red]{len(errors)} policy error(s):[/bold red]")
    for error in errors:
        console.print(format_policy_error(error), markup=False, highlight=False)


def print_check_result(tool_name: str, result: CheckResult) -> None:
    console.print(f"{tool_name}: {_decision(result.decision)}")
    rule = result.rule
    if rule is None:
        console.print("  No rule matched; default decision applied.")
        return
    console.print(f"  Rule: {rule.tool_name or '*'} @ {rule.priority:.3f} ({rule.source})")
    if rule.args_pattern is not None:
        console.print(f"  Args pattern: {rule.args_pattern.pattern}", markup=False)


def print_activity(event: ActivityEvent) -> None:
    """Render one agent activity event as a single dim line."""
    data = event.data
    if event.type == "THOUGHT_CHUNK":
        console.print(f"[dim]{data.get('text', '')}[/dim]", end="")
    elif event.type == "TOOL_CALL_START":
        args = _truncate(json.dumps(data.get("args", {}), default=str))
        console.print(f"\n[cyan]→ {data.get('name')}[/cyan] {args}", highlight=False)
    elif event.type == "TOOL_CALL_END":
        console.print(f"[green]✓ {data.get('name')}[/green] {_truncate(str(data.get('output', '')))}")
    else:
        console.print(f"[red]✗ {data.get('name') or data.get('context')}:[/red] {data.get('error')}")


def print_agent_output(output: AgentOutput, *, as_json: bool = False) -> None:
    if as_json:
        console.print_json(output.model_dump_json())
        return
    style = "green" if output.terminate_reason.value == "GOAL" else "yellow"
    console.print(f"\n[bold {style}]{output.terminate_reason.value}[/bold {style}]")
    console.print(output.result, markup=False)


def _decision(decision: PolicyDecision) -> str:
    style = _DECISION_STYLES[decision]
    return f"[{style}]{decision.value}[/{style}]"


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
