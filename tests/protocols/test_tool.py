"""Tests for the Tool protocol, BaseTool validation and FunctionTool."""

from __future__ import annotations

import pytest

from warden.core.interface.models import ToolResult
from warden.protocols.tool import BaseTool, FunctionTool, Tool
from warden.runtime.gatekeeper.models import ExecConfirmation
from warden.utils.cancellation import CancellationSignal


class _Typed(BaseTool):
    name = "typed"
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string"},
            "count": {"type": "integer"},
            "ratio": {"type": "number"},
            "force": {"type": "boolean"},
            "tags": {"type": "array"},
        },
        "required": ["path"],
    }

    async def execute(self, args, signal, update_output=None) -> ToolResult:
        return ToolResult.from_text("ok")


class TestBaseToolValidation:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(_Typed(), Tool)

    def test_valid(self) -> None:
        args = {"path": "a", "count": 2, "ratio": 0.5, "force": True, "tags": []}
        assert _Typed().validate_args(args) is None

    def test_missing_required(self) -> None:
        assert _Typed().validate_args({}) == "Missing required parameter 'path'"

    def test_wrong_type(self) -> None:
        assert _Typed().validate_args({"path": 1}) == "Parameter 'path' must be of type string"

    def test_bool_is_not_integer(self) -> None:
        assert _Typed().validate_args({"path": "a", "count": True}) is not None

    def test_integer_is_a_number(self) -> None:
        assert _Typed().validate_args({"path": "a", "ratio": 3}) is None

    def test_unknown_keys_pass(self) -> None:
        assert _Typed().validate_args({"path": "a", "extra": object()}) is None

    async def test_no_confirmation_by_default(self) -> None:
        assert await _Typed().should_confirm_execute({}, CancellationSignal()) is None


class TestFunctionTool:
    async def test_sync_function(self) -> None:
        def add(a: int, b: int) -> int:
            """Add two numbers."""
            return a + b

        tool = FunctionTool(add)
        result = await tool.execute({"a": 1, "b": 2}, CancellationSignal())

        assert tool.name == "add"
        assert tool.description == "Add two numbers."
        assert result.llm_content == "3"

    async def test_async_function_returning_result(self) -> None:
        async def fetch(url: str) -> ToolResult:
            return ToolResult(llm_content=f"body of {url}", return_display="fetched")

        tool = FunctionTool(fetch, name="web_fetch", description="Fetch a URL.")
        result = await tool.execute({"url": "https://example.com"}, CancellationSignal())

        assert tool.name == "web_fetch"
        assert result.return_display == "fetched"

    async def test_confirm_callback(self) -> None:
        def confirm(args):
            return ExecConfirmation(title="Run?", command=args["command"])

        tool = FunctionTool(lambda command: "ran", name="shell", confirm=confirm)
        details = await tool.should_confirm_execute({"command": "ls"}, CancellationSignal())

        assert isinstance(details, ExecConfirmation)
        assert details.command == "ls"

    @pytest.mark.parametrize("parameters", [None, {"type": "object", "properties": {"x": {}}}])
    def test_declaration(self, parameters) -> None:
        tool = FunctionTool(lambda: "x", name="noop", parameters=parameters)
        assert tool.declaration()["parameters"]["type"] == "object"
