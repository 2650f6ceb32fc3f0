"""Tests for SettingsLoader, import_tool and Session wiring."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from warden.core.agents.models import AgentDefinition
from warden.core.interface.client import ModelClient
from warden.core.interface.config import ModelConfig
from warden.protocols.registry import ToolRegistry
from warden.protocols.tool import FunctionTool, Tool
from warden.runtime.policy.config import DEFAULT_POLICIES_DIR, SYSTEM_POLICIES_ENV
from warden.runtime.policy.models import ApprovalMode, PolicyDecision
from warden.sdk.errors import SettingsValidationError
from warden.sdk.models import PolicyDirSettings, SessionSettings, TelemetrySettings
from warden.sdk.session import Session, SettingsLoader, import_tool

_SETTINGS_YAML = """\
approval_mode: default
policy:
  tools:
    allowed: [run_shell_command]
model:
  model: openai/gpt-4o-mini
  api_key: test-key
"""

_TOOLS_MODULE = '''\
from warden.core.interface.models import ToolResult
from warden.protocols.tool import BaseTool


class Greeter(BaseTool):
    name = "greet"

    async def execute(self, args, signal, update_output=None):
        return ToolResult.from_text("hello")


GREETER = Greeter()


def shout(text: str) -> str:
    """Upper-case the text."""
    return text.upper()


class Namespace:
    tool = Greeter()


NOT_A_TOOL = 42
'''


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv(SYSTEM_POLICIES_ENV, str(tmp_path / "system"))
    return home


@pytest.fixture
def tools_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    pkg = tmp_path / "modules"
    pkg.mkdir()
    (pkg / "warden_sample_tools.py").write_text(_TOOLS_MODULE)
    monkeypatch.syspath_prepend(str(pkg))
    return "warden_sample_tools"


def _definition(**overrides: Any) -> AgentDefinition:
    data: dict[str, Any] = {"name": "helper", "prompt_config": {"system_prompt": "Help."}}
    data.update(overrides)
    return AgentDefinition.model_validate(data)


class TestSettingsLoader:
    def test_load_valid(self, tmp_path: Path) -> None:
        f = tmp_path / "warden.yaml"
        f.write_text(_SETTINGS_YAML)
        settings = SettingsLoader(f).load()
        assert settings.policy.tools.allowed == ["run_shell_command"]
        assert settings.model is not None
        assert settings.model.model == "openai/gpt-4o-mini"

    def test_env_var_interpolation(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_KEY", "secret-123")
        f = tmp_path / "warden.yaml"
        f.write_text(_SETTINGS_YAML.replace("test-key", "${MY_KEY}"))
        settings = SettingsLoader(f).load()
        assert settings.model is not None
        assert settings.model.api_key == "secret-123"

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        f = tmp_path / "warden.yaml"
        f.write_text("")
        assert SettingsLoader(f).load() == SessionSettings()

    def test_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(SettingsValidationError, match="Cannot read"):
            SettingsLoader(tmp_path / "missing.yaml").load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        f = tmp_path / "bad.yaml"
        f.write_text("{{{{invalid")
        with pytest.raises(SettingsValidationError, match="YAML parse error"):
            SettingsLoader(f).load()

    def test_yaml_not_mapping(self, tmp_path: Path) -> None:
        f = tmp_path / "list.yaml"
        f.write_text("- item1\n- item2\n")
        with pytest.raises(SettingsValidationError, match="must be a mapping"):
            SettingsLoader(f).load()

    def test_schema_violation(self, tmp_path: Path) -> None:
        f = tmp_path / "bad_mode.yaml"
        f.write_text("approval_mode: sometimes\n")
        with pytest.raises(SettingsValidationError, match="approval_mode"):
            SettingsLoader(f).load()


class TestImportTool:
    def test_tool_instance(self, tools_module: str) -> None:
        tool = import_tool(f"{tools_module}:GREETER")
        assert tool.name == "greet"

    def test_tool_class_is_instantiated(self, tools_module: str) -> None:
        tool = import_tool(f"{tools_module}:Greeter")
        assert isinstance(tool, Tool)
        assert tool.name == "greet"

    def test_dotted_attribute(self, tools_module: str) -> None:
        assert import_tool(f"{tools_module}:Namespace.tool").name == "greet"

    def test_function_is_wrapped(self, tools_module: str) -> None:
        tool = import_tool(f"{tools_module}:shout")
        assert isinstance(tool, FunctionTool)
        assert tool.name == "shout"
        assert tool.description == "Upper-case the text."

    def test_non_tool_rejected(self, tools_module: str) -> None:
        with pytest.raises(TypeError, match="not a tool"):
            import_tool(f"{tools_module}:NOT_A_TOOL")

    @pytest.mark.parametrize("path", ["no_colon", ":attr", "module:"])
    def test_bad_format(self, path: str) -> None:
        with pytest.raises(ValueError, match="module:attr"):
            import_tool(path)

    def test_missing_module(self) -> None:
        with pytest.raises(ImportError):
            import_tool("warden_no_such_module:tool")

    def test_missing_attribute(self, tools_module: str) -> None:
        with pytest.raises(AttributeError):
            import_tool(f"{tools_module}:missing")


class TestSessionPolicy:
    def test_from_yaml_roots_at_file(self, tmp_path: Path) -> None:
        f = tmp_path / "warden.yaml"
        f.write_text(_SETTINGS_YAML)
        session = Session.from_yaml(f)
        assert session.base_dir == tmp_path

    def test_policy_dir_overrides(self, tmp_path: Path, isolated_home: Path) -> None:
        settings = SessionSettings(
            policy_dirs=PolicyDirSettings(user=Path("team-policies"), admin=Path("~/admin"))
        )
        dirs = Session(settings, base_dir=tmp_path).policy_directories()
        assert dirs.default == DEFAULT_POLICIES_DIR
        assert dirs.user == tmp_path / "team-policies"
        assert dirs.admin == isolated_home / "admin"

    def test_standard_dirs_without_overrides(self, tmp_path: Path, isolated_home: Path) -> None:
        dirs = Session(base_dir=tmp_path).policy_directories()
        assert dirs.user == isolated_home / ".warden" / "policies"
        assert dirs.admin == tmp_path / "system"

    def test_engine_combines_files_and_settings(self, tmp_path: Path, isolated_home: Path) -> None:
        user_dir = tmp_path / "policies"
        user_dir.mkdir()
        (user_dir / "team.toml").write_text(
            '[[rule]]\ntool_name = "write_file"\ndecision = "deny"\npriority = 10\n'
        )
        f = tmp_path / "warden.yaml"
        f.write_text(_SETTINGS_YAML + "policy_dirs:\n  user: policies\n")

        session = Session.from_yaml(f)
        engine = session.policy_engine

        assert session.policy_errors == []
        assert engine.evaluate("read_file") == PolicyDecision.ALLOW
        assert engine.evaluate("write_file") == PolicyDecision.DENY
        assert engine.evaluate("run_shell_command") == PolicyDecision.ALLOW
        assert session.policy_engine is engine

    def test_engine_records_errors(self, tmp_path: Path, isolated_home: Path) -> None:
        user_dir = tmp_path / "policies"
        user_dir.mkdir()
        (user_dir / "broken.toml").write_text("[[rule]")
        settings = SessionSettings(policy_dirs=PolicyDirSettings(user=user_dir))

        session = Session(settings)
        _ = session.policy_engine

        assert len(session.policy_errors) == 1

    def test_non_interactive_denies_ask(self, isolated_home: Path) -> None:
        session = Session(SessionSettings(non_interactive=True))
        assert session.policy_engine.evaluate("write_file") == PolicyDecision.DENY

    def test_yolo_mode(self, isolated_home: Path) -> None:
        session = Session(SessionSettings(approval_mode=ApprovalMode.YOLO))
        assert session.policy_engine.evaluate("run_shell_command") == PolicyDecision.ALLOW


class TestSessionWiring:
    async def test_build_registry(self) -> None:
        provider = AsyncMock()
        provider.discover_tools.return_value = [
            {"type": "function", "function": {"name": "create_issue", "description": "New issue"}}
        ]
        local = FunctionTool(lambda: "pong", name="ping")

        registry = await Session().build_registry(tools=[local], providers={"github": provider})

        assert registry.get_all_tool_names() == ["ping", "github__create_issue"]

    def test_resolve_tools(self, tools_module: str) -> None:
        definition = _definition(tool_config={"tools": ["read_file", f"{tools_module}:shout"]})

        resolved, tools = Session().resolve_tools(definition)

        assert resolved.tool_names == ["read_file", "shout"]
        assert [t.name for t in tools] == ["shout"]
        assert definition.tool_names[1] == f"{tools_module}:shout"

    def test_create_executor_prefers_settings_model(self, isolated_home: Path) -> None:
        session = Session(SessionSettings(model=ModelConfig(model="anthropic/claude-3-haiku")))
        executor = session.create_executor(_definition(), ToolRegistry())
        assert isinstance(executor._model, ModelClient)
        assert executor._model.config.model == "anthropic/claude-3-haiku"

    def test_create_executor_uses_definition_model(self, isolated_home: Path) -> None:
        definition = _definition(model={"model": "openai/gpt-4o-mini"})
        executor = Session().create_executor(definition, ToolRegistry())
        assert executor._model.config.model == "openai/gpt-4o-mini"


class TestTelemetry:
    def test_disabled_by_default(self) -> None:
        with patch("warden.sdk.session.configure_telemetry") as configure:
            Session().configure_telemetry()
        configure.assert_not_called()

    def test_enabled(self) -> None:
        settings = SessionSettings(
            telemetry=TelemetrySettings(enabled=True, console=True, otlp_endpoint="http://x:4317")
        )
        with patch("warden.sdk.session.configure_telemetry") as configure:
            Session(settings).configure_telemetry()
        configure.assert_called_once_with(export_to_console=True, otlp_endpoint="http://x:4317")

