"""ToolCallScheduler — drives batches of tool calls to a terminal state.

Each call moves through::

    validating -> scheduled -> [awaiting_approval] -> executing
               -> success | error | cancelled

Calls within a batch run concurrently; a call waiting for confirmation
does not hold up its siblings.  Batches run one at a time in submission
order.  Every per-call failure becomes a function response for the model;
nothing a tool does can make :meth:`ToolCallScheduler.schedule` raise.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from warden.protocols.errors import ToolExecutionError
from warden.runtime.errors import (
    ApprovalDeniedError,
    ApprovalTimeoutError,
    OperationCancelledError,
)
from warden.runtime.gatekeeper.models import ConfirmationOutcome, ConfirmationRequest
from warden.runtime.gatekeeper.updater import update_policy_after_confirmation
from warden.runtime.policy.models import PolicyDecision
from warden.runtime.scheduler.models import (
    ToolCall,
    ToolCallRequest,
    ToolCallResponseInfo,
    ToolCallStatus,
    ToolErrorType,
)
from warden.runtime.scheduler.responses import (
    convert_to_function_response,
    create_cancelled_response,
    create_error_response,
    tool_not_found_message,
)
from warden.utils.cancellation import CancellationSignal, run_until_cancelled
from warden.utils.telemetry import (
    ATTR_BATCH_SIZE,
    ATTR_POLICY_DECISION,
    ATTR_TOOL_CALL_ID,
    ATTR_TOOL_NAME,
    ATTR_TOOL_STATUS,
    get_tracer,
)

if TYPE_CHECKING:
    from warden.core.interface.models import ToolResult
    from warden.protocols.registry import ToolRegistry
    from warden.protocols.tool import Tool
    from warden.runtime.gatekeeper.gatekeeper import ConfirmationHandler
    from warden.runtime.gatekeeper.models import ConfirmationDetails
    from warden.runtime.policy.engine import PolicyEngine

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

AllToolCallsCompleteHandler = Callable[[list[ToolCall]], Awaitable[None] | None]
ToolCallsUpdateHandler = Callable[[list[ToolCall]], None]
OutputUpdateHandler = Callable[[str, str], None]

USER_CANCELLED_REASON = "User cancelled the operation."


class ToolCallScheduler:
    """Schedule, confirm and execute tool calls requested by the model.

    Usage::

        scheduler = ToolCallScheduler(
            registry,
            policy_engine=engine,
            confirmation_handler=CLIGatekeeper(),
        )
        completed = await scheduler.schedule(requests, signal)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        policy_engine: PolicyEngine | None = None,
        confirmation_handler: ConfirmationHandler | None = None,
        on_all_tool_calls_complete: AllToolCallsCompleteHandler | None = None,
        on_tool_calls_update: ToolCallsUpdateHandler | None = None,
        output_update_handler: OutputUpdateHandler | None = None,
    ) -> None:
        self._registry = registry
        self._policy_engine = policy_engine
        self._confirmation_handler = confirmation_handler
        self._on_all_tool_calls_complete = on_all_tool_calls_complete
        self._on_tool_calls_update = on_tool_calls_update
        self._output_update_handler = output_update_handler

        # asyncio.Lock wakes waiters in FIFO order, so batches keep submission order.
        self._batch_lock = asyncio.Lock()
        self._tool_calls: list[ToolCall] = []
        self._pending_outcomes: dict[str, asyncio.Future[ConfirmationOutcome]] = {}
        self._running = False

    @property
    def tool_calls(self) -> list[ToolCall]:
        """Snapshot of the current (or most recent) batch."""
        return list(self._tool_calls)

    @property
    def is_running(self) -> bool:
        return self._running

    async def schedule(
        self,
        requests: ToolCallRequest | Sequence[ToolCallRequest],
        signal: CancellationSignal | None = None,
    ) -> list[ToolCall]:
        """Run *requests* as one batch and return the finished calls in request order.

        If another batch is running, this one waits until it has fully
        drained.  ``on_all_tool_calls_complete`` fires exactly once per batch.
        """
        batch = [requests] if isinstance(requests, ToolCallRequest) else list(requests)
        signal = signal or CancellationSignal()

        async with self._batch_lock:
            with _tracer.start_as_current_span("scheduler.batch") as span:
                span.set_attribute(ATTR_BATCH_SIZE, len(batch))
                calls = [ToolCall(request=request) for request in batch]
                self._tool_calls = calls
                self._running = True
                try:
                    self._notify_update()
                    await asyncio.gather(*(self._run_call(call, signal) for call in calls))
                finally:
                    self._running = False

            logger.debug(
                "Batch complete: %s",
                ", ".join(f"{c.name}={c.status.value}" for c in calls),
            )
            await self._notify_complete(list(calls))
            return list(calls)

    def resolve_confirmation(self, call_id: str, outcome: ConfirmationOutcome) -> bool:
        """Supply *outcome* for a call awaiting approval.

        Returns ``False`` (and does nothing) if the call is not awaiting approval.
        """
        future = self._pending_outcomes.get(call_id)
        if future is None or future.done():
            logger.debug("Ignoring confirmation for %s: not awaiting approval", call_id)
            return False
        future.set_result(outcome)
        return True

    # ------------------------------------------------------------------
    # Per-call pipeline
    # ------------------------------------------------------------------

    async def _run_call(self, call: ToolCall, signal: CancellationSignal) -> None:
        try:
            await self._process(call, signal)
        except OperationCancelledError as exc:
            self._set_cancelled(call, exc.reason)
        except Exception as exc:
            logger.exception("Unexpected failure while processing tool call %s", call.call_id)
            self._set_error(call, str(exc) or type(exc).__name__, ToolErrorType.UNHANDLED_EXCEPTION)

    async def _process(self, call: ToolCall, signal: CancellationSignal) -> None:
        signal.raise_if_cancelled()
        request = call.request

        tool = self._registry.get_tool(request.name)
        if tool is None:
            message = tool_not_found_message(request.name, self._registry.get_all_tool_names())
            self._set_error(call, message, ToolErrorType.TOOL_NOT_REGISTERED)
            return
        call.tool = tool

        invalid = tool.validate_args(request.args)
        if invalid:
            self._set_error(call, invalid, ToolErrorType.INVALID_TOOL_PARAMS)
            return

        decision = self._decide(tool, request)
        if decision != PolicyDecision.ALLOW:
            details = await run_until_cancelled(
                tool.should_confirm_execute(request.args, signal), signal
            )
            if decision == PolicyDecision.DENY:
                self._set_error(
                    call,
                    f'Tool execution for "{request.name}" was blocked by policy.',
                    ToolErrorType.POLICY_DENIED,
                )
                return
            if details is not None and not await self._confirm(call, tool, details, signal):
                return

        self._set_status(call, ToolCallStatus.SCHEDULED)
        await self._execute(call, tool, signal, decision)

    def _decide(self, tool: Tool, request: ToolCallRequest) -> PolicyDecision:
        if self._policy_engine is None:
            return PolicyDecision.ASK_USER
        decision = self._policy_engine.evaluate(
            request.name,
            request.args,
            server_name=getattr(tool, "server_name", None),
        )
        logger.debug("Policy decision for %s (%s): %s", request.name, request.call_id, decision.value)
        return decision

    async def _confirm(
        self,
        call: ToolCall,
        tool: Tool,
        details: ConfirmationDetails,
        signal: CancellationSignal,
    ) -> bool:
        """Hold *call* in awaiting_approval until it may proceed.

        Returns ``False`` if the call reached a terminal state instead.
        """
        while True:
            call.confirmation_details = details
            self._set_status(call, ToolCallStatus.AWAITING_APPROVAL)

            try:
                outcome = await self._wait_for_outcome(call, details, signal)
            except ApprovalTimeoutError as exc:
                self._set_cancelled(call, str(exc))
                return False
            except ApprovalDeniedError as exc:
                self._set_error(call, str(exc), ToolErrorType.CONFIRMATION_REJECTED)
                return False

            call.outcome = outcome
            logger.debug("Confirmation outcome for %s: %s", call.call_id, outcome.value)

            if outcome == ConfirmationOutcome.CANCEL:
                self._set_cancelled(call, USER_CANCELLED_REASON)
                return False

            if outcome == ConfirmationOutcome.MODIFY_WITH_EDITOR:
                modify_args = getattr(tool, "modify_args", None)
                if modify_args is None:
                    continue
                new_args: dict[str, Any] = await run_until_cancelled(
                    modify_args(call.request.args, signal), signal
                )
                call.request = call.request.model_copy(update={"args": new_args})
                invalid = tool.validate_args(new_args)
                if invalid:
                    self._set_error(call, invalid, ToolErrorType.INVALID_TOOL_PARAMS)
                    return False
                next_details = await run_until_cancelled(
                    tool.should_confirm_execute(new_args, signal), signal
                )
                if next_details is None:
                    call.confirmation_details = None
                    return True
                details = next_details
                continue

            if self._policy_engine is not None:
                update_policy_after_confirmation(
                    self._policy_engine, call.name, details, outcome
                )
            call.confirmation_details = None
            return True

    async def _wait_for_outcome(
        self,
        call: ToolCall,
        details: ConfirmationDetails,
        signal: CancellationSignal,
    ) -> ConfirmationOutcome:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[ConfirmationOutcome] = loop.create_future()
        self._pending_outcomes[call.call_id] = future

        handler_task: asyncio.Task[ConfirmationOutcome] | None = None
        if self._confirmation_handler is not None:
            request = ConfirmationRequest(
                call_id=call.call_id,
                tool_name=call.name,
                args=call.request.args,
                details=details,
            )
            handler_task = asyncio.ensure_future(
                self._confirmation_handler.request_confirmation(request)
            )
            handler_task.add_done_callback(lambda task: _forward_outcome(task, future))

        try:
            return await run_until_cancelled(future, signal)
        finally:
            self._pending_outcomes.pop(call.call_id, None)
            if handler_task is not None and not handler_task.done():
                handler_task.cancel()

    def _output_callback(self, call: ToolCall) -> Callable[[str], None]:
        def update_output(chunk: str) -> None:
            if call.status != ToolCallStatus.EXECUTING:
                return
            call.live_output = chunk
            self._emit_output(call.call_id, chunk)
            self._notify_update()

        return update_output

    async def _execute(
        self,
        call: ToolCall,
        tool: Tool,
        signal: CancellationSignal,
        decision: PolicyDecision,
    ) -> None:
        self._set_status(call, ToolCallStatus.EXECUTING)
        request = call.request
        update_output = self._output_callback(call) if tool.can_update_output else None

        with _tracer.start_as_current_span("tool.execute") as span:
            span.set_attribute(ATTR_TOOL_NAME, request.name)
            span.set_attribute(ATTR_TOOL_CALL_ID, request.call_id)
            span.set_attribute(ATTR_POLICY_DECISION, decision.value)
            try:
                result: ToolResult = await run_until_cancelled(
                    tool.execute(request.args, signal, update_output), signal
                )
            except OperationCancelledError:
                raise
            except ToolExecutionError as exc:
                self._set_error(call, str(exc), ToolErrorType.EXECUTION_FAILED)
            except Exception as exc:
                logger.warning("Tool %s raised: %s", request.name, exc, exc_info=True)
                self._set_error(
                    call, str(exc) or type(exc).__name__, ToolErrorType.UNHANDLED_EXCEPTION
                )
            else:
                if signal.cancelled:
                    self._set_cancelled(call, signal.reason or "Operation cancelled.")
                elif result.error is not None:
                    self._set_error(call, result.error, ToolErrorType.EXECUTION_FAILED)
                else:
                    self._set_success(call, result)
            span.set_attribute(ATTR_TOOL_STATUS, call.status.value)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _set_status(self, call: ToolCall, status: ToolCallStatus) -> None:
        if call.is_terminal:
            return
        logger.debug("Tool call %s (%s): %s -> %s", call.call_id, call.name, call.status.value, status.value)
        call.status = status
        if status != ToolCallStatus.AWAITING_APPROVAL:
            call.confirmation_details = None
        if status.is_terminal:
            call.live_output = None
            call.duration_ms = (time.monotonic() - call.start_time) * 1000
        self._notify_update()

    def _finish(self, call: ToolCall, status: ToolCallStatus, response: ToolCallResponseInfo) -> None:
        if call.is_terminal:
            return
        call.response = response
        self._set_status(call, status)

    def _set_success(self, call: ToolCall, result: ToolResult) -> None:
        parts = convert_to_function_response(call.name, call.call_id, result.llm_content)
        content_length = (
            len(result.llm_content) if isinstance(result.llm_content, str) else len(parts)
        )
        self._finish(
            call,
            ToolCallStatus.SUCCESS,
            ToolCallResponseInfo(
                call_id=call.call_id,
                response_parts=parts,
                result_display=result.return_display,
                content_length=content_length,
            ),
        )

    def _set_error(self, call: ToolCall, message: str, error_type: ToolErrorType) -> None:
        logger.debug("Tool call %s failed (%s): %s", call.call_id, error_type.value, message)
        self._finish(call, ToolCallStatus.ERROR, create_error_response(call.request, message, error_type))

    def _set_cancelled(self, call: ToolCall, reason: str) -> None:
        self._finish(call, ToolCallStatus.CANCELLED, create_cancelled_response(call.request, reason))

    # ------------------------------------------------------------------
    # Observers (best-effort)
    # ------------------------------------------------------------------

    def _notify_update(self) -> None:
        if self._on_tool_calls_update is None:
            return
        try:
            self._on_tool_calls_update(list(self._tool_calls))
        except Exception:
            logger.warning("on_tool_calls_update handler failed", exc_info=True)

    def _emit_output(self, call_id: str, chunk: str) -> None:
        if self._output_update_handler is None:
            return
        try:
            self._output_update_handler(call_id, chunk)
        except Exception:
            logger.warning("output_update_handler failed", exc_info=True)

    async def _notify_complete(self, calls: list[ToolCall]) -> None:
        if self._on_all_tool_calls_complete is None:
            return
        try:
            result = self._on_all_tool_calls_complete(calls)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("on_all_tool_calls_complete handler failed", exc_info=True)


def _forward_outcome(
    task: asyncio.Task[ConfirmationOutcome], future: asyncio.Future[ConfirmationOutcome]
) -> None:
    if future.done() or task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(task.result())
