"""Tool-call scheduling — per-call state machines with confirmation and cancellation."""

from warden.runtime.scheduler.models import (
    ToolCall,
    ToolCallRequest,
    ToolCallResponseInfo,
    ToolCallStatus,
    ToolErrorType,
)
from warden.runtime.scheduler.responses import (
    convert_to_function_response,
    create_error_response,
    get_tool_suggestion,
)
from warden.runtime.scheduler.scheduler import ToolCallScheduler

__all__ = [
    "ToolCall",
    "ToolCallRequest",
    "ToolCallResponseInfo",
    "ToolCallScheduler",
    "ToolCallStatus",
    "ToolErrorType",
    "convert_to_function_response",
    "create_error_response",
    "get_tool_suggestion",
]
