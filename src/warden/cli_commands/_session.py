"""Session construction shared by the CLI commands."""

from __future__ import annotations

import sys

from warden.cli_commands._output import console
from warden.runtime.errors import PolicyConfigError
from warden.runtime.policy.models import ApprovalMode
from warden.sdk.errors import SettingsValidationError
from warden.sdk.session import Session

MODE_CHOICES = [mode.value for mode in ApprovalMode]


def load_session(settings: str | None, mode: str | None = None) -> Session:
    """Build a session and its policy engine, exiting on invalid configuration."""
    try:
        session = Session.from_yaml(settings) if settings else Session()
    except SettingsValidationError as exc:
        console.print(f"[red]Settings error:[/red] {exc}")
        sys.exit(1)
    if mode is not None:
        session.settings.approval_mode = ApprovalMode(mode)
    try:
        session.policy_engine  # noqa: B018
    except PolicyConfigError as exc:
        console.print(f"[red]Policy error:[/red] {exc}")
        sys.exit(1)
    return session
