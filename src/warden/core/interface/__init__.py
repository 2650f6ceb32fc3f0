"""Model interface — canonical conversation model and streaming client."""

from warden.core.interface.client import ChatModel, ModelChunk, ModelClient
from warden.core.interface.config import ModelConfig
from warden.core.interface.models import (
    CanonicalMessage,
    ContentPart,
    ConversationHistory,
    FunctionResponse,
    ImageContent,
    TextContent,
    ToolCall,
    ToolResult,
)
from warden.core.interface.transpiler import OpenAITranspiler

__all__ = [
    "CanonicalMessage",
    "ChatModel",
    "ContentPart",
    "ConversationHistory",
    "FunctionResponse",
    "ImageContent",
    "ModelChunk",
    "ModelClient",
    "ModelConfig",
    "OpenAITranspiler",
    "TextContent",
    "ToolCall",
    "ToolResult",
]
