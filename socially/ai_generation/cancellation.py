"""
Run-scoped cooperative cancellation for illustration batches.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from socially.common import GenerationCancelled

T = TypeVar("T")


class RunCancellation:
    """
    One signal shared by every request, backoff delay and task launcher of a run.

    ``cancel`` is idempotent. Once set, :meth:`sleep` and :meth:`guard` raise
    :class:`GenerationCancelled` immediately.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled("Generation cancelled by user.")

    async def sleep(self, seconds: float) -> None:
        """Wait ``seconds`` unless the run is cancelled first."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` racing the cancellation signal.

        If the signal wins, the pending work is cancelled and
        :class:`GenerationCancelled` is raised.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if not work.done():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
            self.raise_if_cancelled()
        return work.result()
