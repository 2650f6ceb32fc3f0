"""Data models for the tool-call scheduler."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from warden.core.interface.models import ContentPart

if TYPE_CHECKING:
    from warden.protocols.tool import Tool
    from warden.runtime.gatekeeper.models import ConfirmationDetails, ConfirmationOutcome


class ToolCallRequest(BaseModel):
    """One tool invocation the model asked for."""

    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    is_client_initiated: bool = False
    prompt_id: str = ""


class ToolCallStatus(str, Enum):
    """Lifecycle state of a scheduled tool call."""

    VALIDATING = "validating"
    SCHEDULED = "scheduled"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING = "executing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ToolCallStatus.SUCCESS, ToolCallStatus.ERROR, ToolCallStatus.CANCELLED)


class ToolErrorType(str, Enum):
    """Why a tool call ended in ``error`` (or was refused)."""

    TOOL_NOT_REGISTERED = "tool_not_registered"
    INVALID_TOOL_PARAMS = "invalid_tool_params"
    POLICY_DENIED = "policy_denied"
    CONFIRMATION_REJECTED = "confirmation_rejected"
    EXECUTION_FAILED = "execution_failed"
    UNHANDLED_EXCEPTION = "unhandled_exception"


class ToolCallResponseInfo(BaseModel):
    """What a finished call sends back to the model, plus display data."""

    call_id: str
    response_parts: list[ContentPart] = Field(default_factory=list)
    result_display: str = ""
    error: str | None = None
    error_type: ToolErrorType | None = None
    content_length: int = 0


@dataclass
class ToolCall:
    """A scheduled tool call; owned and mutated only by the scheduler.

    ``confirmation_details`` is set only while awaiting approval and
    ``live_output`` only while executing a tool that streams output.
    """

    request: ToolCallRequest
    status: ToolCallStatus = ToolCallStatus.VALIDATING
    tool: Tool | None = None
    confirmation_details: ConfirmationDetails | None = None
    live_output: str | None = None
    response: ToolCallResponseInfo | None = None
    outcome: ConfirmationOutcome | None = None
    start_time: float = field(default_factory=time.monotonic)
    duration_ms: float | None = None

    @property
    def call_id(self) -> str:
        return self.request.call_id

    @property
    def name(self) -> str:
        return self.request.name

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
