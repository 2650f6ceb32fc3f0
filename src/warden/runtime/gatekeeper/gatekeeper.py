"""Confirmation handler protocol and implementations.

- ``ConfirmationHandler`` — runtime-checkable protocol for confirmation UIs.
- ``CLIGatekeeper`` — prompts the user via stdin/stdout.
- ``AutoApproveGatekeeper`` — always proceeds once (for testing/CI).
- ``AutoRejectGatekeeper`` — always cancels (for non-interactive runs).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING, Protocol, assert_never, runtime_checkable

from warden.runtime.errors import ApprovalTimeoutError
from warden.runtime.gatekeeper.models import (
    ConfirmationOutcome,
    EditConfirmation,
    ExecConfirmation,
    InfoConfirmation,
    McpConfirmation,
)

if TYPE_CHECKING:
    from warden.runtime.gatekeeper.models import ConfirmationDetails, ConfirmationRequest

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfirmationHandler(Protocol):
    """Decides how a tool call that needs confirmation should proceed."""

    async def request_confirmation(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        """Ask for a decision and return the outcome."""
        ...


class AutoApproveGatekeeper:
    """Always proceeds once — suitable for tests and CI pipelines.

    Satisfies the :class:`ConfirmationHandler` protocol.
    """

    async def request_confirmation(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        logger.debug("AutoApproveGatekeeper: auto-approving %s", request.tool_name)
        return ConfirmationOutcome.PROCEED_ONCE


class AutoRejectGatekeeper:
    """Always cancels — used when nobody is available to answer.

    Satisfies the :class:`ConfirmationHandler` protocol.
    """

    async def request_confirmation(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        logger.debug("AutoRejectGatekeeper: rejecting %s", request.tool_name)
        return ConfirmationOutcome.CANCEL


def confirmation_choices(details: ConfirmationDetails) -> list[tuple[str, ConfirmationOutcome]]:
    """Return the ``(label, outcome)`` options offered for *details*."""
    if isinstance(details, EditConfirmation):
        return [
            ("Allow once", ConfirmationOutcome.PROCEED_ONCE),
            ("Allow always", ConfirmationOutcome.PROCEED_ALWAYS),
            ("Modify with editor", ConfirmationOutcome.MODIFY_WITH_EDITOR),
        ]
    if isinstance(details, ExecConfirmation):
        return [
            ("Allow once", ConfirmationOutcome.PROCEED_ONCE),
            (f"Always allow '{details.root_command}'", ConfirmationOutcome.PROCEED_ALWAYS),
        ]
    if isinstance(details, InfoConfirmation):
        return [
            ("Allow once", ConfirmationOutcome.PROCEED_ONCE),
            ("Allow always", ConfirmationOutcome.PROCEED_ALWAYS),
        ]
    if isinstance(details, McpConfirmation):
        return [
            ("Allow once", ConfirmationOutcome.PROCEED_ONCE),
            (
                f"Always allow '{details.tool_name}' from '{details.server_name}'",
                ConfirmationOutcome.PROCEED_ALWAYS_TOOL,
            ),
            (f"Always allow all tools from '{details.server_name}'", ConfirmationOutcome.PROCEED_ALWAYS_SERVER),
        ]
    assert_never(details)


def describe_confirmation(details: ConfirmationDetails) -> list[str]:
    """Return the body lines shown to the user for *details*."""
    if isinstance(details, EditConfirmation):
        lines = [f"  File:      {details.file_name}"]
        if details.file_diff:
            lines.extend(f"  {line}" for line in details.file_diff.splitlines())
        return lines
    if isinstance(details, ExecConfirmation):
        return [f"  Command:   {details.command}"]
    if isinstance(details, InfoConfirmation):
        lines = [f"  {details.prompt}"]
        lines.extend(f"  URL:       {url}" for url in details.urls)
        return lines
    if isinstance(details, McpConfirmation):
        return [
            f"  Server:    {details.server_name}",
            f"  Tool:      {details.tool_display_name or details.tool_name}",
        ]
    assert_never(details)


class CLIGatekeeper:
    """Prompts the user at the terminal for a confirmation outcome.

    Satisfies the :class:`ConfirmationHandler` protocol.

    Uses ``loop.run_in_executor(None, input)`` to read from stdin without
    blocking the event loop.  A read left behind by a timed-out or cancelled
    prompt keeps its thread; the next prompt takes over that read instead of
    starting a second one, and a line that arrived with no prompt waiting is
    dropped.  Raises :class:`ApprovalTimeoutError` if no response arrives
    within *timeout*; the scheduler treats that as a cancellation.
    """

    def __init__(self, *, timeout: float = 300.0) -> None:
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._pending_read: asyncio.Future[str] | None = None

    async def request_confirmation(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        choices = confirmation_choices(request.details)
        # One prompt on the terminal at a time; sibling calls queue here.
        async with self._lock:
            self._print_summary(request, choices)
            try:
                answer: str = await asyncio.wait_for(
                    asyncio.shield(self._next_line()), timeout=self._timeout
                )
            except TimeoutError:
                raise ApprovalTimeoutError(request.tool_name, self._timeout)
            self._pending_read = None

        return self._parse_answer(answer, choices)

    def _next_line(self) -> asyncio.Future[str]:
        loop = asyncio.get_running_loop()
        pending = self._pending_read
        if pending is not None and pending.get_loop() is loop and not pending.done():
            return pending
        if (
            pending is not None
            and pending.done()
            and not pending.cancelled()
            and pending.exception() is None
        ):
            logger.debug("Dropping answer typed for an abandoned prompt: %r", pending.result())
        self._pending_read = loop.run_in_executor(None, self._read_input)
        return self._pending_read

    @staticmethod
    def _parse_answer(
        answer: str, choices: list[tuple[str, ConfirmationOutcome]]
    ) -> ConfirmationOutcome:
        answer = answer.strip().lower()
        if answer in ("y", "yes"):
            return ConfirmationOutcome.PROCEED_ONCE
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1][1]
        return ConfirmationOutcome.CANCEL

    @staticmethod
    def _print_summary(
        request: ConfirmationRequest, choices: list[tuple[str, ConfirmationOutcome]]
    ) -> None:
        """Print a human-readable action summary to stdout."""
        sep = "-" * 60
        sys.stdout.write(f"\n{sep}\n")
        sys.stdout.write(f"  {request.details.title}\n")
        sys.stdout.write(f"  Tool:      {request.tool_name}\n")
        for line in describe_confirmation(request.details):
            sys.stdout.write(f"{line}\n")
        sys.stdout.write(f"{sep}\n")
        for index, (label, _) in enumerate(choices, start=1):
            sys.stdout.write(f"  [{index}] {label}\n")
        sys.stdout.write("  [n] Cancel\n")
        sys.stdout.write("  Choice: ")
        sys.stdout.flush()

    @staticmethod
    def _read_input() -> str:
        """Blocking read from stdin (run in executor)."""
        return input()
