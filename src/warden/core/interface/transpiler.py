"""OpenAI transpiler — renders conversation history in the chat format LiteLLM accepts.

LiteLLM takes OpenAI-style messages for every provider and adapts them
internally, so this is the only mapping needed.
"""

import json
from typing import Any

from warden.core.interface.models import (
    CanonicalMessage,
    ContentPart,
    ConversationHistory,
    FunctionResponse,
    ImageContent,
    TextContent,
)


class OpenAITranspiler:
    """Renders a conversation as OpenAI chat-completion messages."""

    def to_provider(self, history: ConversationHistory) -> dict[str, Any]:
        """Return ``{"messages": [...]}`` for *history*, in order.

        A user message holding function responses expands into one ``tool``
        message per response, followed by a ``user`` message for any other
        parts (e.g. images a tool returned).
        """
        messages: list[dict[str, Any]] = []
        for msg in history:
            messages.extend(self._message_to_openai(msg))
        return {"messages": messages}

    def tool_schemas(self, declarations: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Wrap function declarations as OpenAI ``tools`` entries."""
        return [{"type": "function", "function": decl} for decl in declarations]

    def _message_to_openai(self, msg: CanonicalMessage) -> list[dict[str, Any]]:
        responses = msg.function_responses
        if responses:
            result = [
                {
                    "role": "tool",
                    "tool_call_id": fr.id,
                    "content": json.dumps(fr.response, default=str),
                }
                for fr in responses
            ]
            rest = [p for p in msg.content if not isinstance(p, FunctionResponse)]
            if rest:
                result.append(
                    {"role": "user", "content": [self._content_part_to_openai(p) for p in rest]}
                )
            return result

        out: dict[str, Any] = {"role": msg.role}
        if len(msg.content) == 1 and isinstance(msg.content[0], TextContent):
            out["content"] = msg.content[0].text
        elif msg.content:
            out["content"] = [self._content_part_to_openai(p) for p in msg.content]
        else:
            out["content"] = None

        if msg.tool_calls:
            out["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments),
                    },
                }
                for tc in msg.tool_calls
            ]
        return [out]

    def _content_part_to_openai(self, part: ContentPart) -> dict[str, Any]:
        """One entry of an OpenAI ``content`` array."""
        if isinstance(part, TextContent):
            return {"type": "text", "text": part.text}
        if isinstance(part, ImageContent):
            url = part.url
            if part.data and part.media_type:
                url = f"data:{part.media_type};base64,{part.data}"
            return {"type": "image_url", "image_url": {"url": url}}
        return {"type": "text", "text": json.dumps(part.response, default=str)}


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """Decode a tool call's JSON arguments; undecodable input is kept under ``raw``."""
    if not raw:
        return {}
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {"raw": raw}
    return result if isinstance(result, dict) else {"raw": raw}
