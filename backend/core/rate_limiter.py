"""
FIFO call queue that throttles outbound provider calls.

A single drain task dispatches queued calls one at a time, keeping at least
`min_interval_seconds` between dispatches and at most `max_calls_per_minute`
dispatches per window. Failed calls resolve to None so one rejection never
stalls the queue.
"""
import asyncio
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from config import (
    MAX_CALLS_PER_MINUTE,
    MIN_CALL_INTERVAL_SECONDS,
    RATE_LIMIT_CALL_TIMEOUT_SECONDS,
    RATE_LIMIT_WINDOW_SECONDS,
)

logger = logging.getLogger(__name__)

ApiCall = Callable[[], Awaitable[Any]]


@dataclass
class _PendingCall:
    call: ApiCall
    future: asyncio.Future
    swallow_errors: bool


class RateLimiter:
    def __init__(
        self,
        max_calls_per_minute: Optional[int] = MAX_CALLS_PER_MINUTE,
        min_interval_seconds: float = MIN_CALL_INTERVAL_SECONDS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        call_timeout_seconds: Optional[float] = RATE_LIMIT_CALL_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "rate-limiter",
    ):
        self.max_calls_per_minute = max_calls_per_minute
        self.min_interval_seconds = min_interval_seconds
        self.window_seconds = window_seconds
        self.call_timeout_seconds = call_timeout_seconds
        self.name = name
        self._clock = clock
        self._sleep = sleep

        self._queue: deque[_PendingCall] = deque()
        self._lock = threading.Lock()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self._in_flight: Optional[_PendingCall] = None

        self._window_start = clock()
        self._calls_in_window = 0
        self._last_call_time: Optional[float] = None
        self._total_dispatched = 0

    # ---- Public API ----

    async def submit(self, call: ApiCall, swallow_errors: bool = True) -> Any:
        """
        Queue `call` and wait for its turn.
        Returns the call's result, or None if it failed and swallow_errors is set.
        With swallow_errors=False the failure is re-raised to this caller only.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        with self._lock:
            self._queue.append(_PendingCall(call, future, swallow_errors))
            start_drain = not self._draining
            if start_drain:
                self._draining = True
        if start_drain:
            self._drain_task = loop.create_task(self._drain())
        return await future

    def is_draining(self) -> bool:
        return self._draining

    def stats(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "queued": len(self._queue),
                "calls_in_window": self._calls_in_window,
                "total_dispatched": self._total_dispatched,
                "draining": self._draining,
            }

    async def shutdown(self) -> None:
        """Stop draining and resolve the in-flight call and every queued call with None."""
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        with self._lock:
            pending = list(self._queue)
            if self._in_flight is not None:
                pending.insert(0, self._in_flight)
                self._in_flight = None
            self._queue.clear()
            self._draining = False
        for item in pending:
            if not item.future.done():
                item.future.set_result(None)
        if pending:
            logger.info(f"{self.name}: shutdown dropped {len(pending)} queued calls.")

    # ---- Drain loop ----

    async def _drain(self) -> None:
        while True:
            now = self._clock()
            with self._lock:
                if not self._queue:
                    self._draining = False
                    return
                if now - self._window_start >= self.window_seconds:
                    self._calls_in_window = 0
                    self._window_start = now
                budget_exhausted = (
                    self.max_calls_per_minute is not None
                    and self._calls_in_window >= self.max_calls_per_minute
                )
                window_remaining = self.window_seconds - (now - self._window_start)

            if budget_exhausted:
                logger.info(f"{self.name}: per-minute budget reached, waiting {window_remaining:.1f}s")
                await self._sleep(window_remaining)
                continue

            if self._last_call_time is not None:
                since_last = now - self._last_call_time
                if since_last < self.min_interval_seconds:
                    await self._sleep(self.min_interval_seconds - since_last)

            with self._lock:
                pending = self._queue.popleft()
                self._calls_in_window += 1
                self._total_dispatched += 1
                self._last_call_time = self._clock()

            if pending.future.done():
                continue
            self._in_flight = pending
            await self._execute(pending)
            self._in_flight = None

    async def _execute(self, pending: _PendingCall) -> None:
        try:
            if self.call_timeout_seconds is not None:
                result = await asyncio.wait_for(pending.call(), self.call_timeout_seconds)
            else:
                result = await pending.call()
        except Exception as e:
            logger.warning(f"{self.name}: rate-limited call failed: {e!r}")
            if pending.future.done():
                return
            if pending.swallow_errors:
                pending.future.set_result(None)
            else:
                pending.future.set_exception(e)
            return
        if not pending.future.done():
            pending.future.set_result(result)
