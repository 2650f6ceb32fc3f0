"""Tests for cancellation signals."""

from __future__ import annotations

import asyncio

import pytest

from warden.runtime.errors import OperationCancelledError
from warden.utils.cancellation import CancellationSignal, run_until_cancelled


class TestCancellationSignal:
    async def test_cancel_is_idempotent(self) -> None:
        signal = CancellationSignal()
        signal.cancel("first")
        signal.cancel("second")
        assert signal.cancelled
        assert signal.reason == "first"

    async def test_callbacks(self) -> None:
        signal = CancellationSignal()
        fired: list[str] = []
        signal.on_cancel(lambda: fired.append("a"))
        signal.cancel()
        signal.on_cancel(lambda: fired.append("late"))
        assert fired == ["a", "late"]

    async def test_failing_callback_does_not_block_others(self) -> None:
        signal = CancellationSignal()
        fired: list[str] = []

        def broken() -> None:
            raise RuntimeError("boom")

        signal.on_cancel(broken)
        signal.on_cancel(lambda: fired.append("ok"))
        signal.cancel()
        assert fired == ["ok"]

    async def test_raise_if_cancelled(self) -> None:
        signal = CancellationSignal()
        signal.raise_if_cancelled()
        signal.cancel("Stop.")
        with pytest.raises(OperationCancelledError, match="Stop."):
            signal.raise_if_cancelled()

    async def test_any_of_takes_first_reason(self) -> None:
        user, timeout = CancellationSignal(), CancellationSignal()
        combined = CancellationSignal.any_of(user, timeout)
        assert not combined.cancelled

        timeout.cancel("Agent timed out.")
        user.cancel("User aborted.")

        assert combined.cancelled
        assert combined.reason == "Agent timed out."

    async def test_any_of_already_cancelled(self) -> None:
        source = CancellationSignal()
        source.cancel("early")
        assert CancellationSignal.any_of(source).reason == "early"


class TestRunUntilCancelled:
    async def test_returns_result(self) -> None:
        async def work() -> int:
            return 7

        assert await run_until_cancelled(work(), CancellationSignal()) == 7

    async def test_without_signal(self) -> None:
        async def work() -> str:
            return "done"

        assert await run_until_cancelled(work(), None) == "done"

    async def test_cancels_underlying_task(self) -> None:
        signal = CancellationSignal()
        cancelled = asyncio.Event()

        async def forever() -> None:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        asyncio.get_running_loop().call_later(0.01, signal.cancel, "Enough.")
        with pytest.raises(OperationCancelledError, match="Enough."):
            await run_until_cancelled(forever(), signal)
        assert cancelled.is_set()

    async def test_pre_cancelled(self) -> None:
        signal = CancellationSignal()
        signal.cancel()

        async def work() -> int:
            return 1

        coro = work()
        with pytest.raises(OperationCancelledError):
            await run_until_cancelled(coro, signal)
        coro.close()

    async def test_propagates_errors(self) -> None:
        async def broken() -> None:
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            await run_until_cancelled(broken(), CancellationSignal())
