"""Tests for ``warden agents`` CLI commands."""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from typing import TYPE_CHECKING, Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from warden.cli import main
from warden.core.interface.client import ModelChunk
from warden.core.interface.models import ToolCall

if TYPE_CHECKING:
    from pathlib import Path

_MANIFEST = """\
name: {name}
description: A test agent named {name}.
prompt_config:
  system_prompt: You are {name}.
"""

_TOOLS_MODULE = '''\
from pathlib import Path


def record(path: str) -> str:
    """Write a marker file."""
    Path(path).write_text("called")
    return "recorded"
'''


class ScriptedModel:
    def __init__(self, *turns: list[ModelChunk]) -> None:
        self.turns = list(turns)

    async def stream(self, history, tools, *, signal=None):
        for chunk in self.turns.pop(0):
            yield chunk


class InterruptedModel:
    """Delivers Ctrl-C to the process in the middle of a turn."""

    async def stream(self, history, tools, **kwargs):
        signal.raise_signal(signal.SIGINT)
        await asyncio.sleep(5)
        yield ModelChunk(text="too late")


def _calls(*calls: tuple[str, dict[str, Any]]) -> list[ModelChunk]:
    return [ModelChunk(tool_calls=[ToolCall(name=name, arguments=args) for name, args in calls])]


def _write_manifest(tmp_path: Path, content: str) -> str:
    f = tmp_path / "agent.yaml"
    f.write_text(content)
    return str(f)


@pytest.fixture
def tools_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    modules = tmp_path / "modules"
    modules.mkdir()
    (modules / "warden_cli_tools.py").write_text(_TOOLS_MODULE)
    monkeypatch.syspath_prepend(str(modules))
    return "warden_cli_tools"


class TestAgentsList:
    def test_list_agents(self, tmp_path: Path) -> None:
        agents_dir = tmp_path / "agents"
        agents_dir.mkdir()
        (agents_dir / "alpha.yaml").write_text(_MANIFEST.format(name="alpha"))
        (agents_dir / "beta.yaml").write_text(_MANIFEST.format(name="beta"))

        result = CliRunner().invoke(main, ["agents", "list", "--dir", str(agents_dir)])

        assert result.exit_code == 0
        assert "alpha" in result.output
        assert "beta" in result.output

    def test_list_agents_json(self, tmp_path: Path) -> None:
        agents_dir = tmp_path / "agents"
        agents_dir.mkdir()
        (agents_dir / "alpha.yaml").write_text(_MANIFEST.format(name="alpha"))

        result = CliRunner().invoke(
            main, ["agents", "list", "--dir", str(agents_dir), "--format", "json"]
        )

        assert result.exit_code == 0
        assert '"alpha"' in result.output

    def test_list_empty_dir(self, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        result = CliRunner().invoke(main, ["agents", "list", "--dir", str(empty)])
        assert result.exit_code == 0
        assert "No agent manifests found" in result.output

    def test_list_missing_dir(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["agents", "list", "--dir", str(tmp_path / "nope")])
        assert result.exit_code == 0
        assert "Directory not found" in result.output

    def test_list_invalid_manifest(self, tmp_path: Path) -> None:
        agents_dir = tmp_path / "agents"
        agents_dir.mkdir()
        (agents_dir / "bad.yaml").write_text("name: bad\n")
        result = CliRunner().invoke(main, ["agents", "list", "--dir", str(agents_dir)])
        assert result.exit_code == 1
        assert "Validation error" in result.output


class TestAgentsRun:
    def test_goal(self, tmp_path: Path) -> None:
        manifest = _write_manifest(tmp_path, _MANIFEST.format(name="alpha"))
        model = ScriptedModel(_calls(("complete_task", {})))

        with patch("warden.sdk.session.ModelClient", return_value=model):
            result = CliRunner().invoke(main, ["agents", "run", manifest, "--quiet"])

        assert result.exit_code == 0, result.output
        assert "GOAL" in result.output
        assert "Task completed successfully." in result.output

    def test_json_output_and_inputs(self, tmp_path: Path) -> None:
        manifest = _write_manifest(
            tmp_path,
            _MANIFEST.format(name="alpha")
            + "output_config:\n  output_name: answer\n  schema: {type: string}\n",
        )
        model = ScriptedModel(_calls(("complete_task", {"answer": "forty-two"})))

        with patch("warden.sdk.session.ModelClient", return_value=model):
            result = CliRunner().invoke(
                main, ["agents", "run", manifest, "-i", "topic=life", "--json", "-q"]
            )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"result": "forty-two", "terminate_reason": "GOAL"}

    def test_imported_tool_runs(self, tmp_path: Path, tools_module: str) -> None:
        manifest = _write_manifest(
            tmp_path,
            _MANIFEST.format(name="alpha") + f"tool_config:\n  tools: ['{tools_module}:record']\n",
        )
        marker = tmp_path / "marker.txt"
        model = ScriptedModel(
            _calls(("record", {"path": str(marker)})),
            _calls(("complete_task", {})),
        )

        with patch("warden.sdk.session.ModelClient", return_value=model):
            result = CliRunner().invoke(main, ["agents", "run", manifest, "--yes"])

        assert result.exit_code == 0, result.output
        assert marker.read_text() == "called"
        assert "record" in result.output

    def test_non_goal_exits_2(self, tmp_path: Path) -> None:
        manifest = _write_manifest(tmp_path, _MANIFEST.format(name="alpha"))
        model = ScriptedModel([ModelChunk(text="Done.")], [ModelChunk(text="Still done.")])

        with patch("warden.sdk.session.ModelClient", return_value=model):
            result = CliRunner().invoke(main, ["agents", "run", manifest, "-q"])

        assert result.exit_code == 2
        assert "ERROR_NO_COMPLETE_TASK_CALL" in result.output

    @pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need Unix")
    def test_ctrl_c_aborts_run(self, tmp_path: Path) -> None:
        manifest = _write_manifest(tmp_path, _MANIFEST.format(name="alpha"))

        with patch("warden.sdk.session.ModelClient", return_value=InterruptedModel()):
            result = CliRunner().invoke(main, ["agents", "run", manifest, "--json", "-q"])

        assert result.exit_code == 2, result.output
        assert json.loads(result.output) == {
            "result": "Agent execution was aborted.",
            "terminate_reason": "ABORTED",
        }

    def test_validation_error(self, tmp_path: Path) -> None:
        manifest = _write_manifest(tmp_path, "name: broken\n")
        result = CliRunner().invoke(main, ["agents", "run", manifest])
        assert result.exit_code == 1
        assert "Validation error" in result.output

    def test_tool_import_error(self, tmp_path: Path) -> None:
        manifest = _write_manifest(
            tmp_path,
            _MANIFEST.format(name="alpha") + "tool_config:\n  tools: ['warden_missing_mod:tool']\n",
        )
        result = CliRunner().invoke(main, ["agents", "run", manifest])
        assert result.exit_code == 1
        assert "Tool import error" in result.output

    def test_unregistered_tool_is_execution_error(self, tmp_path: Path) -> None:
        manifest = _write_manifest(
            tmp_path, _MANIFEST.format(name="alpha") + "tool_config:\n  tools: [read_file]\n"
        )
        result = CliRunner().invoke(main, ["agents", "run", manifest])
        assert result.exit_code == 1
        assert "Execution error" in result.output
        assert "read_file" in result.output

    def test_bad_input_format(self, tmp_path: Path) -> None:
        manifest = _write_manifest(tmp_path, _MANIFEST.format(name="alpha"))
        result = CliRunner().invoke(main, ["agents", "run", manifest, "-i", "no-equals"])
        assert result.exit_code == 2
        assert "key=value" in result.output

    def test_settings_model_is_used(self, tmp_path: Path) -> None:
        manifest = _write_manifest(tmp_path, _MANIFEST.format(name="alpha"))
        settings = tmp_path / "warden.yaml"
        settings.write_text("model:\n  model: anthropic/claude-3-haiku\n")
        model = ScriptedModel(_calls(("complete_task", {})))

        with patch("warden.sdk.session.ModelClient", return_value=model) as client_cls:
            result = CliRunner().invoke(
                main, ["agents", "run", manifest, "--settings", str(settings), "-q"]
            )

        assert result.exit_code == 0, result.output
        [config] = client_cls.call_args.args
        assert config.model == "anthropic/claude-3-haiku"


class TestMain:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "warden" in result.output

    def test_help_lists_groups(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        assert "policies" in result.output
        assert "agents" in result.output
