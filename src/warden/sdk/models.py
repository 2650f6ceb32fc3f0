"""Pydantic models for the settings YAML consumed by ``warden``.

Example::

    approval_mode: autoEdit
    non_interactive: false
    policy:
      tools:
        allowed: [read_file]
        exclude: [run_shell_command]
      mcp_servers:
        github: {trust: true}
    policy_dirs:
      user: ~/.warden/policies
    model:
      model: anthropic/claude-3-5-sonnet-20240620
      api_key: ${ANTHROPIC_API_KEY}
    telemetry:
      enabled: true
      otlp_endpoint: http://localhost:4317
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003

from pydantic import BaseModel, Field

from warden.core.interface.config import ModelConfig
from warden.runtime.policy.models import ApprovalMode, PolicySettings


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    console: bool = False
    otlp_endpoint: str | None = None


class PolicyDirSettings(BaseModel):
    """Overrides for the per-tier policy directories.

    Unset entries fall back to the standard locations.
    """

    default: Path | None = None
    user: Path | None = None
    admin: Path | None = None


class SessionSettings(BaseModel):
    """Top-level settings parsed from YAML."""

    policy: PolicySettings = Field(default_factory=PolicySettings)
    approval_mode: ApprovalMode = ApprovalMode.DEFAULT
    non_interactive: bool = False
    policy_dirs: PolicyDirSettings = Field(default_factory=PolicyDirSettings)
    model: ModelConfig | None = None
    telemetry: TelemetrySettings | None = None
