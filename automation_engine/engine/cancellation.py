"""External cancellation signal for a run."""

from __future__ import annotations

import asyncio
import threading


class CancellationToken:
    """
    One-shot cancellation signal.

    Safe to trigger from another thread: ``cancel`` hands the wake-up over to
    the loop the runner bound the token to.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach to the loop running the workflow. Called by the runner."""
        self._loop = loop
        self._event = asyncio.Event()
        if self._cancelled.is_set():
            self._event.set()

    def cancel(self) -> None:
        self._cancelled.set()
        if self._event is None or self._loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._event.set()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        if self._event is None:
            self.bind(asyncio.get_running_loop())
        assert self._event is not None
        await self._event.wait()
