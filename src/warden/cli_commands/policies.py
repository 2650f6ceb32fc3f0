"""``warden policies`` — inspect, query and validate policy rules."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from warden.cli_commands._output import (
    console,
    print_check_result,
    print_policy_errors,
    print_rules_table,
)
from warden.cli_commands._session import MODE_CHOICES, load_session
from warden.runtime.policy.models import ADMIN_POLICY_TIER, DEFAULT_POLICY_TIER, USER_POLICY_TIER

_TIERS = {
    "default": DEFAULT_POLICY_TIER,
    "user": USER_POLICY_TIER,
    "admin": ADMIN_POLICY_TIER,
}

settings_option = click.option(
    "--settings",
    "-s",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Settings YAML file.",
)
mode_option = click.option(
    "--mode",
    "-m",
    type=click.Choice(MODE_CHOICES),
    default=None,
    help="Approval mode (overrides the settings file).",
)


@click.group()
def policies() -> None:
    """Inspect and validate tool-call policies."""


@policies.command("list")
@settings_option
@mode_option
def list_rules(settings: str | None, mode: str | None) -> None:
    """List the effective rules in evaluation order."""
    session = load_session(settings, mode)
    engine = session.policy_engine

    if engine.rules:
        print_rules_table(engine.rules)
    else:
        console.print("[yellow]No policy rules loaded.[/yellow]")
    console.print(f"Default decision: {engine.default_decision.value}")
    print_policy_errors(session.policy_errors)


@policies.command("check")
@click.argument("tool_name")
@click.option("--args", "args_json", default=None, help="Tool arguments as a JSON object.")
@click.option("--server", default=None, help="MCP server the tool belongs to.")
@settings_option
@mode_option
def check(
    tool_name: str,
    args_json: str | None,
    server: str | None,
    settings: str | None,
    mode: str | None,
) -> None:
    """Show the decision for calling TOOL_NAME."""
    args = None
    if args_json is not None:
        try:
            args = json.loads(args_json)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"invalid JSON: {exc}", param_hint="--args") from exc
        if not isinstance(args, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--args")

    session = load_session(settings, mode)
    result = session.policy_engine.check(tool_name, args, server_name=server)
    print_check_result(tool_name, result)


@policies.command("validate")
@click.argument("directories", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
@click.option(
    "--tier",
    type=click.Choice(list(_TIERS)),
    default="user",
    help="Tier the files would be loaded into.",
)
@mode_option
def validate(directories: tuple[str, ...], tier: str, mode: str | None) -> None:
    """Load policy files from DIRECTORIES and report problems."""
    from warden.runtime.policy.loader import load_policy_files
    from warden.runtime.policy.models import ApprovalMode

    approval_mode = ApprovalMode(mode) if mode else ApprovalMode.DEFAULT
    result = load_policy_files(
        [(Path(directory), _TIERS[tier]) for directory in directories], approval_mode
    )

    console.print(f"Loaded {len(result.rules)} rule(s) from {len(directories)} directory(ies).")
    if result.errors:
        print_policy_errors(result.errors)
        sys.exit(1)
    console.print("[green]All policy files are valid.[/green]")
