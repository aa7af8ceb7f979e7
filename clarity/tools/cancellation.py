"""Cancellation token for one analysis session.

A single token is shared by every network step of a session. Cancelling it
aborts whichever request is in flight and keeps queued analysis types from
starting.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from clarity.errors import Cancelled
from clarity.tools.utils import Logger

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation flag backed by an asyncio.Event."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Analysis cancelled") -> None:
        """Request cancellation. Later calls keep the first reason."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise Cancelled(self.reason or "Analysis cancelled")


async def run_cancellable(awaitable: Awaitable[T], token: Optional[CancellationToken]) -> T:
    """Await awaitable unless token fires first.

    Args:
        awaitable: The network operation to run
        token: Session token, or None for an uncancellable call

    Returns:
        The awaitable's result

    Raises:
        Cancelled: token fired before the operation finished; the operation's
            task is cancelled and awaited before this is raised
    """
    if token is None:
        return await awaitable

    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled()

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        raise

    if task in done:
        waiter.cancel()
        return task.result()

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        Logger.warning(f"Cancelled operation failed during teardown: {e}")
    token.raise_if_cancelled()
    raise Cancelled()
