"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from warden.cli_commands.agents import agents
    from warden.cli_commands.policies import policies

    cli.add_command(policies)
    cli.add_command(agents)
