"""Agent definition models — what an agent is told, may use, and must return.

Example YAML::

    name: researcher
    description: Answers a question by reading the workspace.
    model:
      model: openai/gpt-4o
    prompt_config:
      system_prompt: |
        You are $name. Answer the question: $question
      query: Start by listing the repository root.
    run_config:
      max_turns: 10
      max_time_minutes: 5
    tool_config:
      tools: [list_directory, read_file]
    output_config:
      output_name: answer
      description: The final answer.
      schema: {type: string}
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from warden.core.interface.config import ModelConfig

AgentInputs = dict[str, Any]

_JSON_SCHEMA_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list[Any],
    "object": dict[str, Any],
}


class AgentTerminateMode(str, Enum):
    """Why an agent run stopped."""

    GOAL = "GOAL"
    MAX_TURNS = "MAX_TURNS"
    TIMEOUT = "TIMEOUT"
    ABORTED = "ABORTED"
    ERROR = "ERROR"
    ERROR_NO_COMPLETE_TASK_CALL = "ERROR_NO_COMPLETE_TASK_CALL"


class InitialMessage(BaseModel):
    """A seed message placed in the history before the first query."""

    role: Literal["user", "assistant"] = "user"
    text: str


class PromptConfig(BaseModel):
    system_prompt: str = Field(default="", description="``$var`` placeholders are filled from inputs.")
    query: str = Field(default="", description="First user message; defaults to 'Get Started!'.")
    initial_messages: list[InitialMessage] = Field(default_factory=list)


class RunConfig(BaseModel):
    max_turns: int | None = Field(default=None, ge=1)
    max_time_minutes: float = Field(default=5.0, gt=0)


class ToolConfig(BaseModel):
    tools: list[str] = Field(
        default_factory=list,
        description="Registered tool names (or 'module:attr' import paths for the CLI).",
    )


class OutputConfig(BaseModel):
    """The value an agent must submit through ``complete_task``.

    Programmatic definitions set ``output_type`` to any type pydantic can
    validate; manifests give a JSON ``schema`` whose top-level ``type``
    selects the Python type.
    """

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    output_name: str
    description: str = ""
    output_type: Any = Field(default=None, exclude=True)
    json_schema: dict[str, Any] | None = Field(default=None, alias="schema")

    @model_validator(mode="after")
    def _resolve_type(self) -> OutputConfig:
        if self.output_type is None:
            schema_type = (self.json_schema or {}).get("type", "string")
            self.output_type = _JSON_SCHEMA_TYPES.get(schema_type, Any)
        return self

    @property
    def adapter(self) -> TypeAdapter[Any]:
        return TypeAdapter(self.output_type)

    def parameter_schema(self) -> dict[str, Any]:
        """JSON schema of the output argument of ``complete_task``."""
        schema = dict(self.json_schema) if self.json_schema else self.adapter.json_schema()
        schema.pop("$schema", None)
        if self.description and "description" not in schema:
            schema["description"] = self.description
        return schema

    def validate_output(self, value: Any) -> Any:
        """Return the validated value; raises :class:`pydantic.ValidationError`."""
        return self.adapter.validate_python(value)


class AgentDefinition(BaseModel):
    """A complete, validated agent definition."""

    name: str
    description: str = ""
    prompt_config: PromptConfig = Field(default_factory=PromptConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    run_config: RunConfig = Field(default_factory=RunConfig)
    tool_config: ToolConfig | None = None
    output_config: OutputConfig | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_prompt(self) -> AgentDefinition:
        if not self.prompt_config.system_prompt and not self.prompt_config.initial_messages:
            msg = "prompt_config needs a system_prompt or initial_messages"
            raise ValueError(msg)
        return self

    @property
    def tool_names(self) -> list[str]:
        return list(self.tool_config.tools) if self.tool_config else []


class AgentOutput(BaseModel):
    """The final result of an agent run."""

    result: str
    terminate_reason: AgentTerminateMode


ActivityType = Literal["THOUGHT_CHUNK", "TOOL_CALL_START", "TOOL_CALL_END", "ERROR"]


class ActivityEvent(BaseModel):
    """A structured progress event for UIs and telemetry."""

    agent_name: str
    type: ActivityType
    data: dict[str, Any] = Field(default_factory=dict)
