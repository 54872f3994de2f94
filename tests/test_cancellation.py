import asyncio

import pytest

from DualChat.infrastructure.errors import SessionCancelled
from DualChat.runtime.cancellation import CancelToken


def test_run_returns_the_result():
    async def compute():
        await asyncio.sleep(0)
        return 42

    assert asyncio.run(CancelToken().run(compute())) == 42


def test_run_on_cancelled_token_never_starts_the_call():
    started = []

    async def compute():
        started.append(True)

    token = CancelToken()
    token.cancel()
    coro = compute()

    with pytest.raises(SessionCancelled):
        asyncio.run(token.run(coro))
    assert started == []
    assert coro.cr_frame is None


def test_cancel_interrupts_a_running_call():
    token = CancelToken()
    interrupted = []

    async def hang():
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            interrupted.append(True)
            raise

    async def scenario():
        task = asyncio.create_task(token.run(hang()))
        await asyncio.sleep(0.01)
        token.cancel()
        with pytest.raises(SessionCancelled):
            await task

    asyncio.run(scenario())
    assert interrupted == [True]


def test_sleep_returns_after_timeout():
    asyncio.run(CancelToken().sleep(0.01))


def test_sleep_ends_early_on_cancel():
    token = CancelToken()

    async def scenario():
        task = asyncio.create_task(token.sleep(3600))
        await asyncio.sleep(0.01)
        token.cancel()
        with pytest.raises(SessionCancelled):
            await task

    asyncio.run(scenario())


def test_raise_if_cancelled():
    token = CancelToken()
    token.raise_if_cancelled()

    token.cancel()

    assert token.cancelled
    with pytest.raises(SessionCancelled):
        token.raise_if_cancelled()
