import asyncio

import pytest

from clarity.errors import Cancelled
from clarity.tools.cancellation import CancellationToken, run_cancellable


async def test_without_token_just_awaits():
    async def work():
        return 42

    assert await run_cancellable(work(), None) == 42


async def test_completed_work_returns_result():
    async def work():
        await asyncio.sleep(0)
        return "done"

    assert await run_cancellable(work(), CancellationToken()) == "done"


async def test_cancel_interrupts_in_flight_work():
    token = CancellationToken()
    finished = []

    async def work():
        try:
            await asyncio.sleep(10)
            finished.append(True)
        except asyncio.CancelledError:
            finished.append(False)
            raise

    async def cancel_soon():
        await asyncio.sleep(0.01)
        token.cancel("Stopped by user")

    canceller = asyncio.create_task(cancel_soon())
    with pytest.raises(Cancelled) as excinfo:
        await run_cancellable(work(), token)
    await canceller

    assert excinfo.value.message == "Stopped by user"
    assert finished == [False]


async def test_already_cancelled_token_never_starts_work():
    token = CancellationToken()
    token.cancel()
    started = []

    async def work():
        started.append(True)

    with pytest.raises(Cancelled):
        await run_cancellable(work(), token)
    assert started == []


def test_first_reason_wins():
    token = CancellationToken()
    token.cancel("first")
    token.cancel("second")
    assert token.cancelled is True
    with pytest.raises(Cancelled) as excinfo:
        token.raise_if_cancelled()
    assert excinfo.value.message == "first"
