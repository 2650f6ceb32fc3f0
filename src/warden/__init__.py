"""Warden — policy-gated tool scheduling and agent turn loop."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from warden.core.agents.executor import AgentExecutor as AgentExecutor
    from warden.runtime.policy.engine import PolicyEngine as PolicyEngine
    from warden.runtime.scheduler.scheduler import ToolCallScheduler as ToolCallScheduler
    from warden.sdk.session import Session as Session

_LAZY_EXPORTS = {
    "AgentExecutor": "warden.core.agents.executor",
    "PolicyEngine": "warden.runtime.policy.engine",
    "Session": "warden.sdk.session",
    "ToolCallScheduler": "warden.runtime.scheduler.scheduler",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'warden' has no attribute {name!r}")
