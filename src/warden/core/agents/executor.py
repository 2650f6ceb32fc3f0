"""AgentExecutor — the turn loop that drives an agent to completion.

Each turn sends the pending message to the model, schedules the tool calls
it requests, and folds the responses into the next message.  The only way
to finish successfully is for the model to call the ``complete_task``
pseudo-tool.  When the loop stops for any other reason except an external
abort, one recovery turn is attempted under a short, independent grace
period.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import ValidationError

from warden.core.agents.manifest import render_template
from warden.core.agents.models import (
    ActivityEvent,
    ActivityType,
    AgentDefinition,
    AgentInputs,
    AgentOutput,
    AgentTerminateMode,
)
from warden.core.interface.models import (
    CanonicalMessage,
    ContentPart,
    ConversationHistory,
    FunctionResponse,
    TextContent,
    ToolCall,
)
from warden.protocols.registry import ToolRegistry
from warden.runtime.errors import OperationCancelledError
from warden.runtime.gatekeeper.gatekeeper import AutoRejectGatekeeper
from warden.runtime.scheduler.models import ToolCallRequest, ToolCallStatus
from warden.runtime.scheduler.scheduler import ToolCallScheduler
from warden.utils.cancellation import CancellationSignal, run_until_cancelled
from warden.utils.telemetry import (
    ATTR_AGENT_NAME,
    ATTR_AGENT_TURN,
    ATTR_MAX_TURNS,
    ATTR_RECOVERY,
    ATTR_TERMINATE_REASON,
    get_tracer,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from warden.core.interface.client import ChatModel
    from warden.runtime.gatekeeper.gatekeeper import ConfirmationHandler
    from warden.runtime.policy.engine import PolicyEngine

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

TASK_COMPLETE_TOOL_NAME = "complete_task"
DEFAULT_GRACE_PERIOD = 60.0
DEFAULT_QUERY = "Get Started!"

RECOVERABLE_MODES = frozenset(
    {
        AgentTerminateMode.MAX_TURNS,
        AgentTerminateMode.TIMEOUT,
        AgentTerminateMode.ERROR_NO_COMPLETE_TASK_CALL,
        AgentTerminateMode.ERROR,
    }
)

_COMPLETION_RULES = f"""

Important Rules:
* Work systematically using available tools to complete your task.
* When you have completed your task, you MUST call the `{TASK_COMPLETE_TOOL_NAME}` tool.
* Do not call any other tools in the same turn as `{TASK_COMPLETE_TOOL_NAME}`.
* This is the ONLY way to complete your mission. If you stop calling tools without calling this, you have failed."""

_FINAL_WARNINGS = {
    AgentTerminateMode.TIMEOUT: "You have exceeded the time limit.",
    AgentTerminateMode.MAX_TURNS: "You have exceeded the maximum number of turns.",
    AgentTerminateMode.ERROR_NO_COMPLETE_TASK_CALL: "You have stopped calling tools without finishing.",
    AgentTerminateMode.ERROR: "Your previous turn failed with an error.",
}

NO_COMPLETE_TASK_MESSAGE = (
    f"Agent stopped calling tools but did not call '{TASK_COMPLETE_TOOL_NAME}' "
    "to finalize the session."
)
DUPLICATE_COMPLETION_MESSAGE = "Task already marked complete in this turn. Ignoring duplicate call."
ALL_CALLS_FAILED_MESSAGE = (
    "All tool calls failed or were unauthorized. "
    "Please analyze the errors and try an alternative approach."
)


def final_warning_message(reason: AgentTerminateMode) -> str:
    """The message sent to the model at the start of the recovery turn."""
    return (
        f"{_FINAL_WARNINGS[reason]} You have one final chance to complete the task with a "
        f"short grace period. You MUST call `{TASK_COMPLETE_TOOL_NAME}` immediately with your "
        "best answer and explain that your investigation was interrupted. "
        "Do not call any other tools."
    )


@dataclass
class _TurnResult:
    stop: bool
    reason: AgentTerminateMode | None = None
    result: str | None = None
    next_message: CanonicalMessage | None = None


class AgentExecutor:
    """Run an :class:`AgentDefinition` against a model and a tool registry.

    Only the tools listed in ``tool_config`` are offered to (and executable
    by) the agent.  Without a confirmation handler every call that needs
    confirmation is cancelled, since nobody is there to answer.

    Usage::

        executor = AgentExecutor(definition, ModelClient(definition.model), registry)
        output = await executor.run({"question": "..."})
    """

    def __init__(
        self,
        definition: AgentDefinition,
        model: ChatModel,
        registry: ToolRegistry,
        *,
        policy_engine: PolicyEngine | None = None,
        confirmation_handler: ConfirmationHandler | None = None,
        on_activity: Callable[[ActivityEvent], None] | None = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self.definition = definition
        self.agent_id = f"{definition.name}-{uuid4().hex[:6]}"
        self._model = model
        self._on_activity = on_activity
        self._grace_period = grace_period

        # Raises ToolNotFoundError for tools the definition names but nobody registered.
        self._registry = ToolRegistry()
        for name in definition.tool_names:
            self._registry.register_tool(registry.require(name))

        self._scheduler = ToolCallScheduler(
            self._registry,
            policy_engine=policy_engine,
            confirmation_handler=confirmation_handler or AutoRejectGatekeeper(),
        )

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(
        self,
        inputs: AgentInputs | None = None,
        signal: CancellationSignal | None = None,
    ) -> AgentOutput:
        """Run the agent until it completes, runs out of budget, or is aborted."""
        inputs = inputs or {}
        external = signal or CancellationSignal()
        run_config = self.definition.run_config

        timeout = CancellationSignal()
        loop = asyncio.get_running_loop()
        timer = loop.call_later(run_config.max_time_minutes * 60, timeout.cancel, "Agent timed out.")
        combined = CancellationSignal.any_of(external, timeout)

        turn = 0
        reason = AgentTerminateMode.ERROR
        result: str | None = None

        with _tracer.start_as_current_span("agent.run") as span:
            span.set_attribute(ATTR_AGENT_NAME, self.definition.name)
            if run_config.max_turns is not None:
                span.set_attribute(ATTR_MAX_TURNS, run_config.max_turns)
            try:
                history = self._build_history(inputs)
                tools = self._prepare_tools()
                query = render_template(self.definition.prompt_config.query, inputs) or DEFAULT_QUERY
                message: CanonicalMessage | None = CanonicalMessage.user(query)

                while True:
                    if self._max_turns_reached(turn):
                        reason = AgentTerminateMode.MAX_TURNS
                        break
                    if combined.cancelled:
                        reason = self._cancel_reason(external, timeout)
                        break

                    assert message is not None
                    try:
                        outcome = await self._execute_turn(
                            history, message, tools, turn, combined, external
                        )
                    except Exception as exc:
                        logger.warning("Agent %s turn %d failed: %s", self.agent_id, turn, exc)
                        self._emit("ERROR", {"error": str(exc), "context": "turn"})
                        reason, result, message = AgentTerminateMode.ERROR, str(exc), None
                        turn += 1
                        break
                    turn += 1

                    if outcome.stop:
                        assert outcome.reason is not None
                        reason, result, message = outcome.reason, outcome.result, None
                        break
                    message = outcome.next_message

                if reason in RECOVERABLE_MODES and not external.cancelled:
                    recovered = await self._recover(history, tools, turn, reason, external, message)
                    if recovered is not None:
                        reason, result = AgentTerminateMode.GOAL, recovered
                    elif external.cancelled:
                        reason, result = AgentTerminateMode.ABORTED, None

                result = self._final_result(reason, result)
                if reason not in (AgentTerminateMode.GOAL, AgentTerminateMode.ABORTED):
                    self._emit("ERROR", {"error": result, "context": reason.value.lower()})
                return AgentOutput(result=result, terminate_reason=reason)
            finally:
                timer.cancel()
                span.set_attribute(ATTR_AGENT_TURN, turn)
                span.set_attribute(ATTR_TERMINATE_REASON, reason.value)
                logger.info(
                    "Agent %s finished after %d turns: %s", self.agent_id, turn, reason.value
                )

    async def _execute_turn(
        self,
        history: ConversationHistory,
        message: CanonicalMessage,
        tools: list[dict[str, Any]],
        turn: int,
        signal: CancellationSignal,
        external: CancellationSignal,
        *,
        recovery: bool = False,
    ) -> _TurnResult:
        prompt_id = f"{self.agent_id}#{turn}"
        with _tracer.start_as_current_span("agent.turn") as span:
            span.set_attribute(ATTR_AGENT_NAME, self.definition.name)
            span.set_attribute(ATTR_AGENT_TURN, turn)
            span.set_attribute(ATTR_RECOVERY, recovery)

            history.append(message)
            try:
                text, calls = await run_until_cancelled(
                    self._call_model(history, tools, signal), signal
                )
            except OperationCancelledError:
                return _TurnResult(stop=True, reason=self._cancel_reason(external, signal))
            history.append(CanonicalMessage.assistant(text, calls or None))

            if not calls:
                self._emit("ERROR", {"error": NO_COMPLETE_TASK_MESSAGE, "context": "protocol_violation"})
                return _TurnResult(
                    stop=True,
                    reason=AgentTerminateMode.ERROR_NO_COMPLETE_TASK_CALL,
                    result=NO_COMPLETE_TASK_MESSAGE,
                )

            next_message, submitted, completed = await self._process_function_calls(
                calls, signal, prompt_id
            )
            if completed:
                return _TurnResult(
                    stop=True,
                    reason=AgentTerminateMode.GOAL,
                    result=submitted or "Task completed successfully.",
                )
            if signal.cancelled:
                history.append(next_message)
                return _TurnResult(stop=True, reason=self._cancel_reason(external, signal))
            return _TurnResult(stop=False, next_message=next_message)

    async def _call_model(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]],
        signal: CancellationSignal,
    ) -> tuple[str, list[ToolCall]]:
        text: list[str] = []
        calls: list[ToolCall] = []
        async for chunk in self._model.stream(history, tools, signal=signal):
            if chunk.thought:
                self._emit("THOUGHT_CHUNK", {"text": chunk.thought})
            if chunk.text:
                text.append(chunk.text)
            calls.extend(chunk.tool_calls)
        return "".join(text), calls

    async def _process_function_calls(
        self,
        calls: list[ToolCall],
        signal: CancellationSignal,
        prompt_id: str,
    ) -> tuple[CanonicalMessage, str | None, bool]:
        """Run the requested calls; return the next message, output and completion flag.

        Response parts keep the order the model requested the calls in.
        """
        slots: list[list[ContentPart]] = [[] for _ in calls]
        scheduled: list[tuple[int, ToolCallRequest]] = []
        submitted: str | None = None
        completed = False

        for index, call in enumerate(calls):
            self._emit(
                "TOOL_CALL_START", {"name": call.name, "args": call.arguments, "call_id": call.id}
            )
            if call.name != TASK_COMPLETE_TOOL_NAME:
                scheduled.append(
                    (
                        index,
                        ToolCallRequest(
                            call_id=call.id,
                            name=call.name,
                            args=call.arguments,
                            is_client_initiated=True,
                            prompt_id=prompt_id,
                        ),
                    )
                )
                continue

            if completed:
                slots[index] = [self._completion_response(call, {"error": DUPLICATE_COMPLETION_MESSAGE})]
                self._emit(
                    "ERROR", {"context": "tool_call", "name": call.name, "error": DUPLICATE_COMPLETION_MESSAGE}
                )
                continue

            output, error = self._accept_completion(call)
            if error is not None:
                slots[index] = [self._completion_response(call, {"error": error})]
                self._emit("ERROR", {"context": "tool_call", "name": call.name, "error": error})
                continue

            completed, submitted = True, output
            status = (
                {"result": "Output submitted and task completed."}
                if self.definition.output_config
                else {"status": "Task marked complete."}
            )
            slots[index] = [self._completion_response(call, status)]
            self._emit("TOOL_CALL_END", {"name": call.name, "output": next(iter(status.values()))})

        if scheduled:
            finished = await self._scheduler.schedule([req for _, req in scheduled], signal)
            for (index, _), tool_call in zip(scheduled, finished, strict=True):
                response = tool_call.response
                if response is None:
                    continue
                slots[index] = list(response.response_parts)
                if tool_call.status == ToolCallStatus.SUCCESS:
                    self._emit("TOOL_CALL_END", {"name": tool_call.name, "output": response.result_display})
                else:
                    self._emit(
                        "ERROR",
                        {"context": "tool_call", "name": tool_call.name, "error": response.result_display},
                    )

        parts = [part for slot in slots for part in slot]
        if not parts and not completed:
            parts = [TextContent(text=ALL_CALLS_FAILED_MESSAGE)]
        return CanonicalMessage.responses(parts), submitted, completed

    def _accept_completion(self, call: ToolCall) -> tuple[str | None, str | None]:
        """Validate a ``complete_task`` call; return ``(output, error)``."""
        output_config = self.definition.output_config
        if output_config is None:
            return "Task completed successfully.", None

        name = output_config.output_name
        if name not in call.arguments:
            return None, f"Missing required argument '{name}' for completion."
        try:
            value = output_config.validate_output(call.arguments[name])
        except ValidationError as exc:
            details = json.dumps(exc.errors(include_url=False), default=str)
            return None, f"Output validation failed: {details}"
        if isinstance(value, str):
            return value, None
        return json.dumps(value, indent=2, default=str), None

    @staticmethod
    def _completion_response(call: ToolCall, response: dict[str, Any]) -> FunctionResponse:
        return FunctionResponse(id=call.id, name=TASK_COMPLETE_TOOL_NAME, response=response)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def _recover(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]],
        turn: int,
        reason: AgentTerminateMode,
        external: CancellationSignal,
        pending: CanonicalMessage | None,
    ) -> str | None:
        """Give the model one last turn to call ``complete_task``.

        Returns the recovered result, or ``None`` if recovery failed.
        """
        self._emit(
            "THOUGHT_CHUNK",
            {
                "text": f"Execution limit reached ({reason.value}). "
                "Attempting one final recovery turn with a grace period."
            },
        )
        grace = CancellationSignal()
        timer = asyncio.get_running_loop().call_later(
            self._grace_period, grace.cancel, "Grace period timed out."
        )
        combined = CancellationSignal.any_of(external, grace)

        # Unanswered tool calls still need their responses before the warning.
        parts: list[ContentPart] = list(pending.content) if pending is not None else []
        parts.append(TextContent(text=final_warning_message(reason)))

        try:
            outcome = await self._execute_turn(
                history,
                CanonicalMessage.responses(parts),
                tools,
                turn,
                combined,
                external,
                recovery=True,
            )
        except Exception as exc:
            self._emit("ERROR", {"error": f"Graceful recovery attempt failed: {exc}", "context": "recovery_turn"})
            return None
        finally:
            timer.cancel()

        if outcome.stop and outcome.reason == AgentTerminateMode.GOAL:
            self._emit("THOUGHT_CHUNK", {"text": "Graceful recovery succeeded."})
            return outcome.result or "Task completed during grace period."

        status = outcome.reason.value if outcome.reason else "continue"
        self._emit(
            "ERROR",
            {"error": f"Graceful recovery attempt failed. Reason: {status}", "context": "recovery_turn"},
        )
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_history(self, inputs: AgentInputs) -> ConversationHistory:
        prompt_config = self.definition.prompt_config
        history = ConversationHistory()
        if prompt_config.system_prompt:
            system_prompt = render_template(prompt_config.system_prompt, inputs)
            history.append(CanonicalMessage.system(system_prompt + _COMPLETION_RULES))
        for seed in prompt_config.initial_messages:
            text = render_template(seed.text, inputs)
            if seed.role == "assistant":
                history.append(CanonicalMessage.assistant(text))
            else:
                history.append(CanonicalMessage.user(text))
        return history

    def _prepare_tools(self) -> list[dict[str, Any]]:
        """Declarations offered to the model; ``complete_task`` always comes last."""
        declarations = self._registry.get_function_declarations()
        output_config = self.definition.output_config
        parameters: dict[str, Any] = {"type": "object", "properties": {}, "required": []}
        if output_config is not None:
            parameters["properties"][output_config.output_name] = output_config.parameter_schema()
            parameters["required"].append(output_config.output_name)
            description = (
                "Call this tool to submit your final answer and complete the task. "
                "This is the ONLY way to finish."
            )
        else:
            description = (
                "Call this tool to signal that you have completed your task. "
                "This is the ONLY way to finish."
            )
        declarations.append(
            {"name": TASK_COMPLETE_TOOL_NAME, "description": description, "parameters": parameters}
        )
        return declarations

    def _max_turns_reached(self, turn: int) -> bool:
        max_turns = self.definition.run_config.max_turns
        return max_turns is not None and turn >= max_turns

    @staticmethod
    def _cancel_reason(external: CancellationSignal, signal: CancellationSignal) -> AgentTerminateMode:
        # An explicit abort wins over a budget that happened to expire too.
        if external.cancelled:
            return AgentTerminateMode.ABORTED
        if signal.cancelled:
            return AgentTerminateMode.TIMEOUT
        return AgentTerminateMode.ABORTED

    def _final_result(self, reason: AgentTerminateMode, result: str | None) -> str:
        run_config = self.definition.run_config
        if reason == AgentTerminateMode.GOAL:
            return result or "Task completed successfully."
        if reason == AgentTerminateMode.TIMEOUT:
            return f"Agent timed out after {run_config.max_time_minutes:g} minutes."
        if reason == AgentTerminateMode.MAX_TURNS:
            return f"Agent reached max turns limit ({run_config.max_turns})."
        if reason == AgentTerminateMode.ERROR_NO_COMPLETE_TASK_CALL:
            return result or f"Agent stopped calling tools but did not call '{TASK_COMPLETE_TOOL_NAME}'."
        if reason == AgentTerminateMode.ABORTED:
            return "Agent execution was aborted."
        return result or "Agent execution was terminated before completion."

    def _emit(self, type: ActivityType, data: dict[str, Any]) -> None:
        if self._on_activity is None:
            return
        try:
            self._on_activity(ActivityEvent(agent_name=self.definition.name, type=type, data=data))
        except Exception:
            logger.warning("Activity observer failed for %s event", type, exc_info=True)
