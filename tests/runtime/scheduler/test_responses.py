"""Tests for function-response conversion and tool-name suggestions."""

from warden.core.interface.models import FunctionResponse, ImageContent, TextContent
from warden.runtime.scheduler.models import ToolCallRequest, ToolErrorType
from warden.runtime.scheduler.responses import (
    SUCCESS_OUTPUT,
    convert_to_function_response,
    create_cancelled_response,
    create_error_response,
    get_tool_suggestion,
    tool_not_found_message,
)


class TestConvertToFunctionResponse:
    def test_plain_text(self) -> None:
        [part] = convert_to_function_response("read_file", "c1", "hello")
        assert isinstance(part, FunctionResponse)
        assert part.id == "c1"
        assert part.name == "read_file"
        assert part.response == {"output": "hello"}

    def test_single_text_part(self) -> None:
        [part] = convert_to_function_response("t", "c1", [TextContent(text="only")])
        assert part.response == {"output": "only"}

    def test_single_image_part(self) -> None:
        image = ImageContent(data="aGk=", media_type="image/png")
        parts = convert_to_function_response("screenshot", "c1", [image])

        assert len(parts) == 2
        assert parts[0].response == {"output": "Binary content of type image/png was processed."}
        assert parts[1] == image

    def test_multiple_parts(self) -> None:
        content = [TextContent(text="a"), ImageContent(url="https://x/y.png")]
        parts = convert_to_function_response("t", "c1", content)

        assert parts[0].response == {"output": SUCCESS_OUTPUT}
        assert parts[1:] == content


class TestErrorResponses:
    def test_error_response(self) -> None:
        request = ToolCallRequest(call_id="c1", name="t")
        info = create_error_response(request, "bad", ToolErrorType.EXECUTION_FAILED)

        assert info.error == "bad"
        assert info.error_type == ToolErrorType.EXECUTION_FAILED
        assert info.response_parts[0].response == {"error": "bad"}

    def test_cancelled_response(self) -> None:
        request = ToolCallRequest(call_id="c1", name="t")
        info = create_cancelled_response(request, "User cancelled the operation.")

        assert info.error is None
        assert info.result_display == "[Operation Cancelled] Reason: User cancelled the operation."


class TestSuggestions:
    def test_top_three(self) -> None:
        known = ["read_file", "read_many_files", "write_file", "glob", "grep"]
        suggestion = get_tool_suggestion("read_fil", known)

        assert suggestion.startswith(' Did you mean one of: "read_file"')
        assert suggestion.count('"') == 6

    def test_single_candidate(self) -> None:
        assert get_tool_suggestion("gerp", ["grep"]) == ' Did you mean "grep"?'

    def test_no_candidates(self) -> None:
        assert get_tool_suggestion("x", []) == ""

    def test_not_found_message(self) -> None:
        message = tool_not_found_message("gerp", ["grep"])
        assert message.startswith('Tool "gerp" not found in registry.')
        assert message.endswith('Did you mean "grep"?')
