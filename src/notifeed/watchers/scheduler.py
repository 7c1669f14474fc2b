"""Clock abstraction and a cancellable repeating task for pollers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall-clock time and real asyncio sleeps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class RepeatingTask:
    """Runs ``callback`` immediately and then once per interval until stopped.

    ``interval`` is either a number of seconds or a zero-argument callable that
    is re-evaluated before every sleep, so interval changes apply from the
    next tick on.

    Each tick runs as its own task. :meth:`stop` cancels the timer loop only;
    a callback already in flight runs to completion.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval: float | Callable[[], float],
        *,
        clock: Clock | None = None,
        name: str = "repeating-task",
        run_immediately: bool = True,
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._clock = clock or SystemClock()
        self._name = name
        self._run_immediately = run_immediately
        self._loop_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def start(self) -> None:
        """Schedule the timer loop on the running event loop."""
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._loop_task = loop.create_task(self._run(), name=self._name)

    def stop(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None

    async def wait_inflight(self) -> None:
        """Wait for ticks that were already running when this was called."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _next_delay(self) -> float:
        interval = self._interval() if callable(self._interval) else self._interval
        return max(float(interval), 0.0)

    async def _run(self) -> None:
        try:
            if self._run_immediately:
                self._fire()
            while True:
                await self._clock.sleep(self._next_delay())
                self._fire()
        except asyncio.CancelledError:
            logger.debug("%s stopped", self._name)
            raise

    def _fire(self) -> None:
        task = asyncio.get_running_loop().create_task(self._invoke(), name=f"{self._name}-tick")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _invoke(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("%s tick failed", self._name)
