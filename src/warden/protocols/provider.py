"""ToolProvider protocol — tools hosted by an external server (e.g. MCP).

The transport that reaches the server is out of scope here; anything that
can list tools and execute them by name satisfies this protocol, and
:meth:`ToolRegistry.register_provider` exposes its tools under
``<server>__<tool>`` names so policy rules can target the whole server.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from warden.core.interface.models import ToolResult


@runtime_checkable
class ToolProvider(Protocol):
    """A server hosting tools that it lists and runs by server-local name."""

    async def discover_tools(self) -> list[dict[str, Any]]:
        """List the server's tools as ``{"type": "function", "function": {...}}`` entries.

        The inner ``function`` mapping needs a ``name``; ``description``,
        ``title`` and a JSON-schema ``parameters`` object are optional.
        """
        ...

    async def execute_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by its server-local name and return its result."""
        ...
