"""Convert tool results and failures into model-consumable response parts."""

from __future__ import annotations

import difflib
from collections.abc import Iterable

from warden.core.interface.models import (
    ContentPart,
    FunctionResponse,
    ImageContent,
    TextContent,
)
from warden.runtime.scheduler.models import (
    ToolCallRequest,
    ToolCallResponseInfo,
    ToolErrorType,
)

SUCCESS_OUTPUT = "Tool execution succeeded."


def function_response_part(call_id: str, tool_name: str, output: str) -> FunctionResponse:
    return FunctionResponse(id=call_id, name=tool_name, response={"output": output})


def convert_to_function_response(
    tool_name: str,
    call_id: str,
    llm_content: str | list[TextContent | ImageContent],
) -> list[ContentPart]:
    """Wrap a tool's ``llm_content`` as response parts for *call_id*.

    Text becomes a single function response.  An image becomes a short
    function response followed by the image itself; several parts become a
    generic success response followed by the parts.
    """
    content: str | TextContent | ImageContent | list[TextContent | ImageContent] = llm_content
    if isinstance(llm_content, list) and len(llm_content) == 1:
        content = llm_content[0]

    if isinstance(content, str):
        return [function_response_part(call_id, tool_name, content)]
    if isinstance(content, list):
        return [function_response_part(call_id, tool_name, SUCCESS_OUTPUT), *content]
    if isinstance(content, ImageContent):
        media_type = content.media_type or "unknown"
        return [
            function_response_part(
                call_id, tool_name, f"Binary content of type {media_type} was processed."
            ),
            content,
        ]
    return [function_response_part(call_id, tool_name, content.text)]


def create_error_response(
    request: ToolCallRequest,
    message: str,
    error_type: ToolErrorType | None,
) -> ToolCallResponseInfo:
    """Build a response carrying ``{"error": message}`` back to the model."""
    return ToolCallResponseInfo(
        call_id=request.call_id,
        response_parts=[
            FunctionResponse(id=request.call_id, name=request.name, response={"error": message})
        ],
        result_display=message,
        error=message,
        error_type=error_type,
        content_length=len(message),
    )


def create_cancelled_response(request: ToolCallRequest, reason: str) -> ToolCallResponseInfo:
    """Build the response for a cancelled call; cancellation is not an error."""
    message = f"[Operation Cancelled] Reason: {reason}"
    return ToolCallResponseInfo(
        call_id=request.call_id,
        response_parts=[
            FunctionResponse(id=request.call_id, name=request.name, response={"error": message})
        ],
        result_display=message,
        content_length=len(message),
    )


def get_tool_suggestion(unknown: str, known: Iterable[str], top_n: int = 3) -> str:
    """Return ``' Did you mean ...?'`` naming the closest registered tools."""
    ranked = sorted(
        known,
        key=lambda name: -difflib.SequenceMatcher(None, unknown, name).ratio(),
    )[:top_n]
    if not ranked:
        return ""
    names = ", ".join(f'"{name}"' for name in ranked)
    if len(ranked) > 1:
        return f" Did you mean one of: {names}?"
    return f" Did you mean {names}?"


def tool_not_found_message(name: str, known: Iterable[str]) -> str:
    return (
        f'Tool "{name}" not found in registry. '
        f"Tools must use the exact names that are registered.{get_tool_suggestion(name, known)}"
    )
