"""Agents — definitions, manifests and the executor turn loop."""

from warden.core.agents.errors import ManifestValidationError
from warden.core.agents.executor import TASK_COMPLETE_TOOL_NAME, AgentExecutor
from warden.core.agents.manifest import ManifestLoader, load_definition, parse_definition
from warden.core.agents.models import (
    ActivityEvent,
    AgentDefinition,
    AgentOutput,
    AgentTerminateMode,
    OutputConfig,
    PromptConfig,
    RunConfig,
    ToolConfig,
)

__all__ = [
    "TASK_COMPLETE_TOOL_NAME",
    "ActivityEvent",
    "AgentDefinition",
    "AgentExecutor",
    "AgentOutput",
    "AgentTerminateMode",
    "ManifestLoader",
    "ManifestValidationError",
    "OutputConfig",
    "PromptConfig",
    "RunConfig",
    "ToolConfig",
    "load_definition",
    "parse_definition",
]
