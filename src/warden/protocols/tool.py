"""Tool protocol — what the scheduler needs from an executable tool.

A tool declares itself to the model (:meth:`Tool.declaration`), validates
arguments, optionally asks for confirmation, and executes.  Tools that
stream progress set ``can_update_output`` and call the ``update_output``
callback they receive in :meth:`Tool.execute`.

:class:`BaseTool` supplies defaults for everything except ``execute``;
:class:`FunctionTool` adapts a plain (sync or async) function.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from warden.core.interface.models import ToolResult

if TYPE_CHECKING:
    from warden.runtime.gatekeeper.models import ConfirmationDetails
    from warden.utils.cancellation import CancellationSignal

OutputCallback = Callable[[str], None]

_JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


@runtime_checkable
class Tool(Protocol):
    """An executable tool the model can call by name."""

    name: str
    can_update_output: bool

    def declaration(self) -> dict[str, Any]:
        """Return the function declaration (name, description, JSON-Schema parameters)."""
        ...

    def validate_args(self, args: dict[str, Any]) -> str | None:
        """Return an error message if *args* are invalid, else ``None``."""
        ...

    async def should_confirm_execute(
        self, args: dict[str, Any], signal: CancellationSignal
    ) -> ConfirmationDetails | None:
        """Describe why confirmation is needed, or ``None`` if it is not."""
        ...

    async def execute(
        self,
        args: dict[str, Any],
        signal: CancellationSignal,
        update_output: OutputCallback | None = None,
    ) -> ToolResult:
        """Run the tool."""
        ...


class BaseTool(ABC):
    """Convenience base class implementing the :class:`Tool` protocol.

    Subclasses set ``name``, ``description`` and ``parameters`` and
    implement :meth:`execute`.  Validation checks required properties and
    top-level JSON types only.
    """

    name: str = ""
    display_name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}}
    can_update_output: bool = False

    def declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate_args(self, args: dict[str, Any]) -> str | None:
        properties: dict[str, Any] = self.parameters.get("properties", {})
        for required in self.parameters.get("required", []):
            if required not in args:
                return f"Missing required parameter '{required}'"
        for key, value in args.items():
            expected = _JSON_TYPES.get(properties.get(key, {}).get("type", ""))
            if expected is None:
                continue
            # bool is an int subclass; keep them apart.
            if isinstance(value, bool) and expected is not bool:
                return f"Parameter '{key}' must be of type {properties[key]['type']}"
            if not isinstance(value, expected):
                return f"Parameter '{key}' must be of type {properties[key]['type']}"
        return None

    async def should_confirm_execute(
        self, args: dict[str, Any], signal: CancellationSignal
    ) -> ConfirmationDetails | None:
        return None

    @abstractmethod
    async def execute(
        self,
        args: dict[str, Any],
        signal: CancellationSignal,
        update_output: OutputCallback | None = None,
    ) -> ToolResult: ...


class FunctionTool(BaseTool):
    """Wrap a function returning ``str`` or :class:`ToolResult` as a tool.

    Synchronous functions run in the default executor.  ``confirm`` may
    supply confirmation details for given arguments.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: dict[str, Any] | None = None,
        confirm: Callable[[dict[str, Any]], ConfirmationDetails | None] | None = None,
    ) -> None:
        self._func = func
        self._confirm = confirm
        self.name = name or func.__name__
        self.description = description or inspect.getdoc(func) or ""
        self.parameters = parameters or {"type": "object", "properties": {}}

    async def should_confirm_execute(
        self, args: dict[str, Any], signal: CancellationSignal
    ) -> ConfirmationDetails | None:
        if self._confirm is None:
            return None
        return self._confirm(args)

    async def execute(
        self,
        args: dict[str, Any],
        signal: CancellationSignal,
        update_output: OutputCallback | None = None,
    ) -> ToolResult:
        if inspect.iscoroutinefunction(self._func):
            value = await self._func(**args)
        else:
            loop = asyncio.get_running_loop()
            value = await loop.run_in_executor(None, lambda: self._func(**args))
        if isinstance(value, ToolResult):
            return value
        return ToolResult.from_text(str(value))
