"""Tests for the OpenAI transpiler and argument parsing."""

import json

import pytest

from warden.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    FunctionResponse,
    ImageContent,
    TextContent,
    ToolCall,
)
from warden.core.interface.transpiler import OpenAITranspiler, parse_arguments


@pytest.fixture
def transpiler() -> OpenAITranspiler:
    return OpenAITranspiler()


def _messages(transpiler: OpenAITranspiler, *msgs: CanonicalMessage) -> list[dict]:
    return transpiler.to_provider(ConversationHistory(messages=list(msgs)))["messages"]


class TestOpenAITranspiler:
    def test_simple_to_provider(self, transpiler: OpenAITranspiler) -> None:
        result = _messages(
            transpiler, CanonicalMessage.system("Be helpful."), CanonicalMessage.user("Hi")
        )
        assert result == [
            {"role": "system", "content": "Be helpful."},
            {"role": "user", "content": "Hi"},
        ]

    def test_tool_call_to_provider(self, transpiler: OpenAITranspiler) -> None:
        msg = CanonicalMessage.assistant(
            tool_calls=[ToolCall(id="call-1", name="calc", arguments={"x": 1})]
        )
        [out] = _messages(transpiler, msg)
        assert out["content"] is None
        assert out["tool_calls"] == [
            {
                "id": "call-1",
                "type": "function",
                "function": {"name": "calc", "arguments": '{"x": 1}'},
            }
        ]

    def test_function_responses_become_tool_messages(self, transpiler: OpenAITranspiler) -> None:
        msg = CanonicalMessage.responses(
            [
                FunctionResponse(id="c1", name="a", response={"output": "one"}),
                FunctionResponse(id="c2", name="b", response={"error": "two"}),
            ]
        )
        result = _messages(transpiler, msg)
        assert [m["role"] for m in result] == ["tool", "tool"]
        assert result[0]["tool_call_id"] == "c1"
        assert json.loads(result[1]["content"]) == {"error": "two"}

    def test_extra_parts_follow_as_user_message(self, transpiler: OpenAITranspiler) -> None:
        msg = CanonicalMessage.responses(
            [
                FunctionResponse(id="c1", name="screenshot", response={"output": "Binary content provided."}),
                ImageContent(data="abc", media_type="image/png"),
            ]
        )
        result = _messages(transpiler, msg)
        assert [m["role"] for m in result] == ["tool", "user"]
        assert result[1]["content"] == [
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,abc"}}
        ]

    def test_multimodal_to_provider(self, transpiler: OpenAITranspiler) -> None:
        msg = CanonicalMessage(
            role="user",
            content=[TextContent(text="What is this?"), ImageContent(url="https://x/img.png")],
        )
        [out] = _messages(transpiler, msg)
        assert out["content"] == [
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": {"url": "https://x/img.png"}},
        ]

    def test_tool_schemas(self, transpiler: OpenAITranspiler) -> None:
        decl = {"name": "calc", "description": "Math", "parameters": {"type": "object"}}
        assert transpiler.tool_schemas([decl]) == [{"type": "function", "function": decl}]


class TestParseArguments:
    def test_empty(self) -> None:
        assert parse_arguments("") == {}
        assert parse_arguments(None) == {}

    def test_object(self) -> None:
        assert parse_arguments('{"path": "a.txt"}') == {"path": "a.txt"}

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"text"'])
    def test_invalid_or_non_object_kept_raw(self, raw: str) -> None:
        assert parse_arguments(raw) == {"raw": raw}
