"""ToolRegistry — the name-to-tool map the scheduler resolves calls against."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from warden.protocols.errors import ToolNotFoundError
from warden.protocols.tool import BaseTool
from warden.runtime.gatekeeper.models import McpConfirmation

if TYPE_CHECKING:
    from warden.core.interface.models import ToolResult
    from warden.protocols.provider import ToolProvider
    from warden.protocols.tool import OutputCallback, Tool
    from warden.runtime.gatekeeper.models import ConfirmationDetails
    from warden.utils.cancellation import CancellationSignal

logger = logging.getLogger(__name__)

MCP_SEPARATOR = "__"


class ProviderTool(BaseTool):
    """A tool executed by a :class:`ToolProvider` on behalf of a named server."""

    def __init__(self, provider: ToolProvider, server_name: str, schema: dict[str, Any]) -> None:
        function = schema["function"]
        self._provider = provider
        self.server_name = server_name
        self.server_tool_name: str = function["name"]
        self.name = f"{server_name}{MCP_SEPARATOR}{self.server_tool_name}"
        self.display_name = function.get("title") or self.server_tool_name
        self.description = function.get("description", "")
        self.parameters = function.get("parameters") or {"type": "object", "properties": {}}

    async def should_confirm_execute(
        self, args: dict[str, Any], signal: CancellationSignal
    ) -> ConfirmationDetails | None:
        return McpConfirmation(
            title=f"Confirm MCP Tool Execution: {self.display_name}",
            server_name=self.server_name,
            tool_name=self.server_tool_name,
            tool_display_name=self.display_name,
        )

    async def execute(
        self,
        args: dict[str, Any],
        signal: CancellationSignal,
        update_output: OutputCallback | None = None,
    ) -> ToolResult:
        return await self._provider.execute_tool(self.server_tool_name, args)


class ToolRegistry:
    """Maintains registered tools and their declarations.

    Usage::

        registry = ToolRegistry()
        registry.register_tool(ReadFileTool())
        await registry.register_provider(mcp_client, server_name="github")

        tool = registry.get_tool("github__create_issue")
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register_tool(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.warning("Tool %s is already registered; replacing it", tool.name)
        self._tools[tool.name] = tool

    async def register_provider(self, provider: ToolProvider, server_name: str) -> list[str]:
        """Discover tools from *provider* and register them under *server_name*.

        Returns the registered (prefixed) tool names.
        """
        names: list[str] = []
        for schema in await provider.discover_tools():
            tool = ProviderTool(provider, server_name, schema)
            self.register_tool(tool)
            names.append(tool.name)
        logger.debug("Registered %d tools from server %s", len(names), server_name)
        return names

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def get_all_tool_names(self) -> list[str]:
        return list(self._tools)

    def get_function_declarations(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        """Return declarations for *names* (all tools when ``None``).

        Raises:
            ToolNotFoundError: If a requested name is not registered.
        """
        if names is None:
            return [tool.declaration() for tool in self._tools.values()]
        return [self.require(name).declaration() for name in names]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
