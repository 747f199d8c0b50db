"""Timer abstraction used by the sync orchestrator."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol


logger = logging.getLogger(__name__)


class Handle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def after(self, delay: float, fn: Callable[[], None]) -> Handle:
        ...

    def every(self, interval: float, fn: Callable[[], None]) -> Handle:
        ...


def _run_safely(fn: Callable[[], None]) -> None:
    try:
        fn()
    except Exception:  # pragma: no cover
        logger.exception("Scheduled callback %r failed", fn)


class _TimerHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class _RepeatingHandle:
    def __init__(self, interval: float, fn: Callable[[], None]) -> None:
        self._interval = interval
        self._fn = fn
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="sheetsync-poll", daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._stopped.wait(self._interval):
            _run_safely(self._fn)

    def cancel(self) -> None:
        self._stopped.set()


class ThreadingScheduler:
    """Wall-clock scheduler backed by daemon threads."""

    def after(self, delay: float, fn: Callable[[], None]) -> Handle:
        timer = threading.Timer(delay, _run_safely, args=(fn,))
        timer.daemon = True
        timer.start()
        return _TimerHandle(timer)

    def every(self, interval: float, fn: Callable[[], None]) -> Handle:
        return _RepeatingHandle(interval, fn)


def cancel(handle: Optional[Handle]) -> None:
    if handle is not None:
        handle.cancel()


__all__ = ["Handle", "Scheduler", "ThreadingScheduler", "cancel"]
