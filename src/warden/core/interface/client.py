"""Model client — streaming async interface to LLMs via LiteLLM.

The agent loop depends only on the :class:`ChatModel` protocol; the
LiteLLM-backed :class:`ModelClient` is the default implementation, and
tests substitute scripted models.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import litellm
from pydantic import BaseModel, Field

from warden.core.interface.config import ModelConfig
from warden.core.interface.models import ConversationHistory, ToolCall
from warden.core.interface.transpiler import OpenAITranspiler, parse_arguments
from warden.utils.cancellation import run_until_cancelled
from warden.utils.telemetry import (
    ATTR_FINISH_REASON,
    ATTR_MODEL,
    ATTR_PROVIDER,
    get_tracer,
)

if TYPE_CHECKING:
    from warden.utils.cancellation import CancellationSignal

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_EXHAUSTED = object()


class ModelChunk(BaseModel):
    """One increment of a streamed model response.

    Text and thought fragments arrive as they are generated; requested
    function calls arrive complete, in the final chunk.
    """

    text: str = ""
    thought: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)


@runtime_checkable
class ChatModel(Protocol):
    """A cancellable streaming chat model."""

    def stream(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]],
        *,
        signal: CancellationSignal | None = None,
    ) -> AsyncIterator[ModelChunk]:
        """Yield response chunks for *history* with *tools* (function declarations)."""
        ...


class _ToolCallBuffer:
    """Reassembles streamed tool-call deltas, keyed by their index."""

    def __init__(self) -> None:
        self._calls: dict[int, dict[str, Any]] = {}

    def add(self, delta: Any) -> None:
        index = getattr(delta, "index", None) or 0
        entry = self._calls.setdefault(index, {"id": None, "name": "", "arguments": ""})
        if getattr(delta, "id", None):
            entry["id"] = delta.id
        function = getattr(delta, "function", None)
        if function is not None:
            if getattr(function, "name", None):
                entry["name"] += function.name
            if getattr(function, "arguments", None):
                entry["arguments"] += function.arguments

    def build(self) -> list[ToolCall]:
        calls: list[ToolCall] = []
        for index in sorted(self._calls):
            entry = self._calls[index]
            kwargs: dict[str, Any] = {
                "name": entry["name"],
                "arguments": parse_arguments(entry["arguments"]),
            }
            if entry["id"]:
                kwargs["id"] = entry["id"]
            calls.append(ToolCall(**kwargs))
        return calls


async def _next_chunk(iterator: Any) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


class ModelClient:
    """Streaming client for LiteLLM-supported models.

    Usage::

        client = ModelClient(ModelConfig(model="openai/gpt-4o"))
        async for chunk in client.stream(history, declarations, signal=signal):
            ...

    Satisfies the :class:`ChatModel` protocol.
    """

    def __init__(self, config: ModelConfig) -> None:
        self.config = config
        self.transpiler = OpenAITranspiler()

    async def stream(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]],
        *,
        signal: CancellationSignal | None = None,
    ) -> AsyncIterator[ModelChunk]:
        with _tracer.start_as_current_span("model.stream") as span:
            span.set_attribute(ATTR_MODEL, self.config.model)
            span.set_attribute(ATTR_PROVIDER, self.config.provider)

            call_kwargs = self._call_kwargs(history, tools)
            response = await run_until_cancelled(
                litellm.acompletion(**call_kwargs),  # pyright: ignore[reportUnknownMemberType]
                signal,
            )

            buffer = _ToolCallBuffer()
            iterator = response.__aiter__()
            while True:
                chunk = await run_until_cancelled(_next_chunk(iterator), signal)
                if chunk is _EXHAUSTED:
                    break
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                for tc in getattr(delta, "tool_calls", None) or []:
                    buffer.add(tc)
                thought = getattr(delta, "reasoning_content", None) or ""
                text = getattr(delta, "content", None) or ""
                if thought or text:
                    yield ModelChunk(text=text, thought=thought)
                if getattr(choice, "finish_reason", None):
                    span.set_attribute(ATTR_FINISH_REASON, str(choice.finish_reason))

            calls = buffer.build()
            logger.debug("Model %s requested %d tool calls", self.config.model, len(calls))
            if calls:
                yield ModelChunk(tool_calls=calls)

    def _call_kwargs(
        self, history: ConversationHistory, tools: list[dict[str, Any]]
    ) -> dict[str, Any]:
        call_kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": self.transpiler.to_provider(history)["messages"],
            "stream": True,
            **self.config.extra,
        }
        if self.config.api_key:
            call_kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            call_kwargs["api_base"] = self.config.api_base
        if self.config.temperature is not None:
            call_kwargs["temperature"] = self.config.temperature
        if self.config.top_p is not None:
            call_kwargs["top_p"] = self.config.top_p
        if tools:
            call_kwargs["tools"] = self.transpiler.tool_schemas(tools)
        return call_kwargs
