"""Event-loop scheduling seam and the trailing-edge debouncer."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """The two primitives the engine needs from an event loop."""

    def call_soon(self, callback: Callable[[], Any]) -> Handle: ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> Handle: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio loop."""

    def call_soon(self, callback: Callable[[], Any]) -> asyncio.Handle:
        return asyncio.get_running_loop().call_soon(callback)

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class Debouncer:
    """Collapses bursts of triggers into one call after *delay* seconds of quiet.

    Each trigger cancels the pending handle and schedules a fresh one, so the
    callback runs once, strictly after the last trigger plus the delay.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        delay: float,
        callback: Callable[[], Any],
    ) -> None:
        self._scheduler = scheduler
        self._delay = max(0.0, float(delay))
        self._callback = callback
        self._handle: Optional[Handle] = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, delay: Optional[float] = None) -> None:
        self.cancel()
        wait = self._delay if delay is None else max(0.0, float(delay))
        self._handle = self._scheduler.call_later(wait, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()
