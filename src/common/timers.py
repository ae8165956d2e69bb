from __future__ import annotations

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after `delay` seconds; the handle cancels it."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """
    Scheduler backed by `threading.Timer`.

    Each call starts one daemon timer thread. Cancelling a timer that has
    already started running its callback has no effect, so callers that need
    "latest wins" semantics must check for staleness themselves.
    """

    def __init__(self, *, name: str = "bingo-timer") -> None:
        self._name = name

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay), fn)
        timer.daemon = True
        timer.name = self._name
        timer.start()
        return timer


__all__ = ["Scheduler", "TimerHandle", "ThreadingScheduler"]
