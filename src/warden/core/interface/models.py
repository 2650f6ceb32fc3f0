"""Canonical conversation model shared by the agent loop and the model client.

The executor builds and extends a :class:`ConversationHistory`; the
transpiler turns it into the OpenAI-style payload LiteLLM accepts.  Answers
to function calls travel back as :class:`FunctionResponse` parts inside a
single ``user`` message, one part per requested call, in request order.
"""

from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


def _new_call_id() -> str:
    return uuid4().hex[:12]


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """An image given either by ``url`` or as base64 ``data``."""

    type: Literal["image"] = "image"
    url: str | None = None
    data: str | None = None
    media_type: str | None = None


class FunctionResponse(BaseModel):
    """The answer to one function call, addressed by call id."""

    type: Literal["function_response"] = "function_response"
    id: str
    name: str
    response: dict[str, Any] = Field(default_factory=dict)


ContentPart = TextContent | ImageContent | FunctionResponse


class ToolCall(BaseModel):
    """A function call requested by the model."""

    id: str = Field(default_factory=_new_call_id)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """What a tool returns from ``execute``.

    ``llm_content`` is what the model sees; ``return_display`` is what a
    human sees.  A tool reports a handled failure by setting ``error``
    instead of raising.
    """

    llm_content: str | list[TextContent | ImageContent] = ""
    return_display: str = ""
    error: str | None = None

    @classmethod
    def from_text(cls, text: str, display: str = "") -> "ToolResult":
        return cls(llm_content=text, return_display=display or text)


class CanonicalMessage(BaseModel):
    """One conversation message.

    ``system`` carries instructions, ``user`` carries queries and function
    responses, ``assistant`` carries model output and its requested calls.
    """

    role: Role
    content: list[ContentPart] = Field(default_factory=list)
    tool_calls: list[ToolCall] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        """All text parts joined together."""
        return "".join(p.text for p in self.content if isinstance(p, TextContent))

    @property
    def function_responses(self) -> list[FunctionResponse]:
        return [p for p in self.content if isinstance(p, FunctionResponse)]

    @classmethod
    def _from_text(cls, role: Role, text: str, metadata: dict[str, Any]) -> "CanonicalMessage":
        return cls(role=role, content=[TextContent(text=text)], metadata=metadata)

    @classmethod
    def system(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        return cls._from_text("system", text, metadata)

    @classmethod
    def user(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        return cls._from_text("user", text, metadata)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_calls: list[ToolCall] | None = None,
        **metadata: Any,
    ) -> "CanonicalMessage":
        """Model output; empty text leaves ``content`` empty."""
        parts: list[ContentPart] = [TextContent(text=text)] if text else []
        return cls(role="assistant", content=parts, tool_calls=tool_calls, metadata=metadata)

    @classmethod
    def responses(cls, parts: list[ContentPart], **metadata: Any) -> "CanonicalMessage":
        """A user message answering the previous turn's function calls."""
        return cls(role="user", content=list(parts), metadata=metadata)


class ConversationHistory(BaseModel):
    """Messages in the order they were exchanged."""

    messages: list[CanonicalMessage] = Field(default_factory=list)

    def append(self, message: CanonicalMessage) -> None:
        self.messages.append(message)

    @property
    def last(self) -> CanonicalMessage | None:
        return self.messages[-1] if self.messages else None

    def by_role(self, role: Role) -> list[CanonicalMessage]:
        return [m for m in self.messages if m.role == role]

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):  # type: ignore[override]
        return iter(self.messages)
