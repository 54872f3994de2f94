"""
Cancellation guard for a discussion session.

A CancelToken carries both a flag (checked at every step boundary) and an
asyncio.Event (which interrupts whatever the session is awaiting). Backends
know nothing about it: run() races the call against the event and cancels
the call's task when the user stops.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Coroutine, Optional, TypeVar

from ..infrastructure.errors import SessionCancelled

T = TypeVar("T")


class CancelToken:
    """One token per session. A new session always cancels the previous token."""

    def __init__(self):
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _get_event(self) -> asyncio.Event:
        # Created lazily so the token can be built outside a running loop
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise SessionCancelled()

    async def run(self, coro: Coroutine[None, None, T]) -> T:
        """
        Await ``coro`` unless the token fires first.

        On cancellation the in-flight task is cancelled and awaited, then
        SessionCancelled is raised.
        """
        if self._cancelled:
            coro.close()
            raise SessionCancelled()

        task: asyncio.Task[T] = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(self._get_event().wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if task in done and not task.cancelled():
            return task.result()
        raise SessionCancelled()

    async def sleep(self, seconds: float) -> None:
        """Backoff wait that ends early (with SessionCancelled) on cancel."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._get_event().wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise SessionCancelled()
