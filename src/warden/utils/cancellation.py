"""Cancellation signals for cooperative interruption.

A :class:`CancellationSignal` is threaded through model calls, confirmation
waits and tool execution.  Components check it at natural breakpoints or
race their awaitables against it with :func:`run_until_cancelled`.

Usage::

    signal = CancellationSignal()
    timeout = CancellationSignal()
    combined = CancellationSignal.any_of(signal, timeout)

    result = await run_until_cancelled(tool.execute(args, combined), combined)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from warden.runtime.errors import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationSignal:
    """One-shot, idempotent cancellation flag with an optional reason.

    Backed by :class:`asyncio.Event` so coroutines can await it.  Callbacks
    registered with :meth:`on_cancel` run synchronously on the first call to
    :meth:`cancel` (or immediately if the signal already fired).
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], Any]] = []
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "Operation cancelled.") -> None:
        """Fire the signal.  Later calls are no-ops."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def on_cancel(self, callback: Callable[[], Any]) -> None:
        self._callbacks.append(callback)
        if self._event.is_set():
            callback()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "Operation cancelled.")

    @classmethod
    def any_of(cls, *signals: CancellationSignal) -> CancellationSignal:
        """Return a signal that fires as soon as any of *signals* fires.

        The combined signal takes the reason of whichever source fired first.
        """
        combined = cls()
        for source in signals:
            source.on_cancel(
                lambda source=source: combined.cancel(source.reason or "Operation cancelled.")
            )
        return combined


async def run_until_cancelled(awaitable: Awaitable[T], signal: CancellationSignal | None) -> T:
    """Await *awaitable*, abandoning it if *signal* fires first.

    The underlying task is cancelled and :class:`OperationCancelledError` is
    raised with the signal's reason.
    """
    if signal is None:
        return await awaitable
    signal.raise_if_cancelled()

    task: asyncio.Future[T] = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    try:
        await task
    except (asyncio.CancelledError, Exception):
        logger.debug("Task abandoned after cancellation", exc_info=True)
    raise OperationCancelledError(signal.reason or "Operation cancelled.")
