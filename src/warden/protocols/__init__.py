"""Protocol layer — tools, tool providers and the tool registry."""

from warden.protocols.errors import (
    ProtocolError,
    ToolExecutionError,
    ToolNotFoundError,
)
from warden.protocols.provider import ToolProvider
from warden.protocols.registry import ProviderTool, ToolRegistry
from warden.protocols.tool import BaseTool, FunctionTool, Tool

__all__ = [
    "BaseTool",
    "FunctionTool",
    "ProtocolError",
    "ProviderTool",
    "Tool",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolProvider",
    "ToolRegistry",
]
