"""Model settings passed through to LiteLLM."""

from typing import Any

from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """Which model an agent talks to, and how.

    ``model`` follows LiteLLM's ``provider/model_name`` convention, e.g.
    ``openai/gpt-4o`` or ``anthropic/claude-3-5-sonnet-20240620``; a bare
    name is routed to OpenAI.
    """

    model: str = "openai/gpt-4o"
    api_key: str | None = None
    api_base: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra keyword arguments for litellm.acompletion (e.g. max_tokens).",
    )

    @property
    def provider(self) -> str:
        prefix, sep, _ = self.model.partition("/")
        return prefix if sep else "openai"
