"""Settings loading and session wiring for the warden SDK."""

from __future__ import annotations

import importlib
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from warden.core.agents.executor import AgentExecutor
from warden.core.agents.models import ToolConfig
from warden.core.interface.client import ModelClient
from warden.protocols.registry import ToolRegistry
from warden.protocols.tool import FunctionTool, Tool
from warden.runtime.policy.config import create_policy_engine_config, get_policy_directories
from warden.runtime.policy.engine import PolicyEngine
from warden.runtime.policy.models import PolicyDirectories, PolicyFileError
from warden.sdk.errors import SettingsValidationError
from warden.sdk.models import SessionSettings
from warden.utils.telemetry import configure_telemetry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from warden.core.agents.models import ActivityEvent, AgentDefinition
    from warden.core.interface.client import ChatModel
    from warden.protocols.provider import ToolProvider
    from warden.runtime.gatekeeper.gatekeeper import ConfirmationHandler

logger = logging.getLogger(__name__)


class SettingsLoader:
    """Load and validate a settings YAML file into :class:`SessionSettings`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> SessionSettings:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before YAML parsing.  An empty file
        yields the default settings.

        Raises:
            SettingsValidationError: On YAML parse errors or schema validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SettingsValidationError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise SettingsValidationError(f"YAML parse error: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsValidationError("Settings YAML must be a mapping")

        try:
            return SessionSettings.model_validate(data)
        except ValidationError as exc:
            raise SettingsValidationError(str(exc)) from exc


def import_tool(path: str) -> Tool:
    """Import a tool from a ``module:attr`` path.

    The attribute may be a tool instance, a tool class taking no arguments,
    or a plain function (wrapped in :class:`FunctionTool`).
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        msg = f"Tool path must look like 'module:attr', got {path!r}"
        raise ValueError(msg)

    target: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        target = getattr(target, part)

    if isinstance(target, type):
        target = target()
    if isinstance(target, Tool):
        return target
    if callable(target):
        return FunctionTool(target)
    msg = f"{path!r} is not a tool or a callable"
    raise TypeError(msg)


class Session:
    """Wire settings into a policy engine, a tool registry and agent executors.

    Usage::

        session = Session.from_yaml("warden.yaml")
        registry = await session.build_registry(tools=[read_file])
        executor = session.create_executor(definition, registry)
        output = await executor.run({"question": "..."})
    """

    def __init__(
        self,
        settings: SessionSettings | None = None,
        *,
        base_dir: Path | None = None,
    ) -> None:
        self.settings = settings or SessionSettings()
        self.base_dir = base_dir or Path.cwd()
        self.policy_errors: list[PolicyFileError] = []
        self._engine: PolicyEngine | None = None

    @classmethod
    def from_yaml(cls, path: str | Path) -> Session:
        """Load a settings YAML and return a session rooted next to it."""
        p = Path(path)
        settings = SettingsLoader(p).load()
        return cls(settings, base_dir=p.parent)

    def policy_directories(self) -> PolicyDirectories:
        """Standard tier directories with the settings' overrides applied."""
        standard = get_policy_directories()
        overrides = self.settings.policy_dirs
        return PolicyDirectories(
            default=self._resolve(overrides.default) or standard.default,
            user=self._resolve(overrides.user) or standard.user,
            admin=self._resolve(overrides.admin) or standard.admin,
        )

    def _resolve(self, path: Path | None) -> Path | None:
        if path is None:
            return None
        path = path.expanduser()
        return path if path.is_absolute() else self.base_dir / path

    @property
    def policy_engine(self) -> PolicyEngine:
        """The session's policy engine, built on first access."""
        if self._engine is None:
            config, errors = create_policy_engine_config(
                self.settings.policy,
                self.settings.approval_mode,
                self.policy_directories(),
                non_interactive=self.settings.non_interactive,
            )
            self.policy_errors = errors
            self._engine = PolicyEngine(config)
        return self._engine

    async def build_registry(
        self,
        tools: Iterable[Tool] = (),
        providers: Mapping[str, ToolProvider] | None = None,
    ) -> ToolRegistry:
        """Register local tools and every tool discovered from *providers*."""
        registry = ToolRegistry()
        for tool in tools:
            registry.register_tool(tool)
        for server_name, provider in (providers or {}).items():
            await registry.register_provider(provider, server_name)
        return registry

    def resolve_tools(self, definition: AgentDefinition) -> tuple[AgentDefinition, list[Tool]]:
        """Import the definition's ``module:attr`` tool paths.

        Returns a copy of *definition* whose tool list names the imported
        tools, plus the tools themselves.  Plain names are left alone.
        """
        tools: list[Tool] = []
        names: list[str] = []
        for entry in definition.tool_names:
            if ":" in entry:
                tool = import_tool(entry)
                tools.append(tool)
                names.append(tool.name)
            else:
                names.append(entry)
        resolved = definition.model_copy(update={"tool_config": ToolConfig(tools=names)})
        return resolved, tools

    def configure_telemetry(self) -> None:
        """Install the tracer provider if telemetry is enabled in the settings."""
        telemetry = self.settings.telemetry
        if telemetry is None or not telemetry.enabled:
            return
        configure_telemetry(
            export_to_console=telemetry.console,
            otlp_endpoint=telemetry.otlp_endpoint,
        )

    def create_executor(
        self,
        definition: AgentDefinition,
        registry: ToolRegistry,
        *,
        model: ChatModel | None = None,
        confirmation_handler: ConfirmationHandler | None = None,
        on_activity: Callable[[ActivityEvent], None] | None = None,
    ) -> AgentExecutor:
        """Build an executor sharing this session's policy engine.

        The settings' ``model`` overrides the definition's when present.
        """
        if model is None:
            model = ModelClient(self.settings.model or definition.model)
        return AgentExecutor(
            definition,
            model,
            registry,
            policy_engine=self.policy_engine,
            confirmation_handler=confirmation_handler,
            on_activity=on_activity,
        )
