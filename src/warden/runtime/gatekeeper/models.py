"""Data models for the confirmation (gatekeeper) subsystem."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class ConfirmationOutcome(str, Enum):
    """The user's answer to a confirmation prompt."""

    PROCEED_ONCE = "proceed_once"
    PROCEED_ALWAYS = "proceed_always"
    PROCEED_ALWAYS_SERVER = "proceed_always_server"
    PROCEED_ALWAYS_TOOL = "proceed_always_tool"
    CANCEL = "cancel"
    MODIFY_WITH_EDITOR = "modify_with_editor"

    @property
    def proceeds(self) -> bool:
        return self not in (ConfirmationOutcome.CANCEL, ConfirmationOutcome.MODIFY_WITH_EDITOR)


class EditConfirmation(BaseModel):
    """A tool wants to change a file."""

    type: Literal["edit"] = "edit"
    title: str
    file_name: str
    file_diff: str = Field(default="", description="Unified diff of the proposed change.")
    original_content: str | None = None
    new_content: str = ""


class ExecConfirmation(BaseModel):
    """A tool wants to run a shell command."""

    type: Literal["exec"] = "exec"
    title: str
    command: str
    root_command: str = Field(
        default="",
        description="First word of the command; 'always allow' is scoped to it.",
    )


class InfoConfirmation(BaseModel):
    """A tool wants to reach out (e.g. fetch URLs) and shows what it will do."""

    type: Literal["info"] = "info"
    title: str
    prompt: str
    urls: list[str] = Field(default_factory=list)


class McpConfirmation(BaseModel):
    """A tool hosted by an MCP server wants to run."""

    type: Literal["mcp"] = "mcp"
    title: str
    server_name: str
    tool_name: str
    tool_display_name: str = ""


ConfirmationDetails = Annotated[
    EditConfirmation | ExecConfirmation | InfoConfirmation | McpConfirmation,
    Field(discriminator="type"),
]


class ConfirmationRequest(BaseModel):
    """What a confirmation handler is asked to decide on."""

    call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    details: ConfirmationDetails
