"""``warden agents`` — list and run agent definitions."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.table import Table

from warden.cli_commands._output import console, print_activity, print_agent_output
from warden.cli_commands._session import load_session
from warden.utils.cancellation import CancellationSignal

if TYPE_CHECKING:
    from warden.core.agents.models import AgentDefinition, AgentOutput
    from warden.protocols.tool import Tool
    from warden.sdk.session import Session

logger = logging.getLogger(__name__)


@click.group()
def agents() -> None:
    """List and run agent definitions."""


@agents.command("list")
@click.option(
    "--dir",
    "directory",
    default="agents",
    type=click.Path(exists=False),
    help="Directory containing agent manifests.",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def list_agents(directory: str, fmt: str) -> None:
    """List all agent manifests in a directory."""
    from warden.core.agents.errors import ManifestValidationError
    from warden.core.agents.manifest import ManifestLoader

    dir_path = Path(directory)
    if not dir_path.is_dir():
        console.print(f"[yellow]Directory not found: {directory}[/yellow]")
        return

    try:
        definitions = ManifestLoader(dir_path).load_all()
    except ManifestValidationError as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        sys.exit(1)

    if not definitions:
        console.print("[yellow]No agent manifests found.[/yellow]")
        return

    if fmt == "json":
        data = {name: d.model_dump(mode="json") for name, d in definitions.items()}
        console.print_json(json.dumps(data, default=str))
        return

    table = Table(title="Agent Manifests")
    table.add_column("Name", style="cyan")
    table.add_column("Model")
    table.add_column("Tools")
    table.add_column("Description")
    for definition in definitions.values():
        table.add_row(
            definition.name,
            definition.model.model,
            ", ".join(definition.tool_names) or "-",
            definition.description,
        )
    console.print(table)


def _parse_inputs(values: tuple[str, ...]) -> dict[str, str]:
    inputs: dict[str, str] = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {value!r}", param_hint="--input")
        inputs[key] = val
    return inputs


@agents.command("run")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.option("--input", "-i", "inputs", multiple=True, help="Agent input as key=value.")
@click.option(
    "--settings",
    "-s",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Settings YAML file.",
)
@click.option("--yes", "-y", is_flag=True, help="Approve every confirmation automatically.")
@click.option("--json", "as_json", is_flag=True, help="Print the final output as JSON.")
@click.option("--quiet", "-q", is_flag=True, help="Do not stream agent activity.")
def run(
    manifest: str,
    inputs: tuple[str, ...],
    settings: str | None,
    yes: bool,
    as_json: bool,
    quiet: bool,
) -> None:
    """Run the agent defined in MANIFEST."""
    from warden.core.agents.errors import ManifestValidationError
    from warden.core.agents.manifest import load_definition

    agent_inputs = _parse_inputs(inputs)
    session = load_session(settings)

    try:
        definition = load_definition(Path(manifest))
        definition, tools = session.resolve_tools(definition)
    except ManifestValidationError as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        sys.exit(1)
    except (ImportError, AttributeError, TypeError, ValueError) as exc:
        console.print(f"[red]Tool import error:[/red] {exc}")
        sys.exit(1)

    session.configure_telemetry()

    try:
        output = asyncio.run(
            _run_agent(session, definition, tools, agent_inputs, yes=yes, quiet=quiet)
        )
    except Exception as exc:
        console.print(f"[red]Execution error:[/red] {exc}")
        sys.exit(1)

    print_agent_output(output, as_json=as_json)
    if output.terminate_reason.value != "GOAL":
        sys.exit(2)


async def _run_agent(
    session: Session,
    definition: AgentDefinition,
    tools: list[Tool],
    inputs: dict[str, str],
    *,
    yes: bool,
    quiet: bool,
) -> AgentOutput:
    from warden.runtime.gatekeeper.gatekeeper import AutoApproveGatekeeper, CLIGatekeeper

    registry = await session.build_registry(tools)
    handler = None
    if yes:
        handler = AutoApproveGatekeeper()
    elif not session.settings.non_interactive:
        handler = CLIGatekeeper()

    executor = session.create_executor(
        definition,
        registry,
        confirmation_handler=handler,
        on_activity=None if quiet else print_activity,
    )
    for error in session.policy_errors:
        console.print(f"[yellow]Policy warning:[/yellow] {error.file_name}: {error.message}")
    cancel = CancellationSignal()
    with _interrupt_cancels(cancel):
        return await executor.run(inputs, signal=cancel)


@contextmanager
def _interrupt_cancels(cancel: CancellationSignal) -> Iterator[None]:
    """Route Ctrl-C to *cancel* so the run ends as ABORTED instead of unwinding."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel, "Interrupted by user.")
    except (NotImplementedError, RuntimeError):
        # No loop signal support on this platform or thread.
        logger.debug("SIGINT handler unavailable; Ctrl-C will interrupt the run")
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)
