"""OpenTelemetry tracing helpers.

``get_tracer()`` works whether or not the OpenTelemetry SDK is installed:
without a configured provider every span is a no-op.

Usage::

    from warden.utils.telemetry import ATTR_TOOL_NAME, get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("tool.execute") as span:
        span.set_attribute(ATTR_TOOL_NAME, "read_file")

Real export is switched on by :func:`configure_telemetry` (requires the
``otel`` extra: ``pip install warden[otel]``).
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Semantic attribute keys
# ---------------------------------------------------------------------------

ATTR_AGENT_NAME = "warden.agent.name"
ATTR_AGENT_TURN = "warden.agent.turn"
ATTR_MAX_TURNS = "warden.agent.max_turns"
ATTR_TERMINATE_REASON = "warden.agent.terminate_reason"
ATTR_RECOVERY = "warden.agent.recovery"
ATTR_MODEL = "warden.model"
ATTR_PROVIDER = "warden.provider"
ATTR_FINISH_REASON = "warden.finish_reason"
ATTR_TOOL_NAME = "warden.tool.name"
ATTR_TOOL_CALL_ID = "warden.tool.call_id"
ATTR_TOOL_STATUS = "warden.tool.status"
ATTR_POLICY_DECISION = "warden.policy.decision"
ATTR_BATCH_SIZE = "warden.scheduler.batch_size"

_INSTRUMENTATION_NAME = "warden"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a :class:`~opentelemetry.trace.Tracer` for *name*."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "warden",
    export_to_console: bool = False,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider (requires ``warden[otel]``).

    Raises:
        ImportError: If ``opentelemetry-sdk`` (or, for *otlp_endpoint*,
            ``opentelemetry-exporter-otlp``) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-sdk is required for configure_telemetry(). "
            "Install it with: pip install warden[otel]"
        )
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if export_to_console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))
    trace.set_tracer_provider(provider)


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
            OTLPSpanExporter,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-exporter-otlp is required for OTLP export. "
            "Install it with: pip install warden[otel]"
        )
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
