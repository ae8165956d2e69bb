from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from common.timers import Scheduler, TimerHandle
from state.models import CardWrite

log = logging.getLogger(__name__)


class MutationDebouncer:
    """
    Trailing-edge debounce of local edits into a single store write.

    - At most one timer is pending at a time.
    - `cancel_and_reschedule()` restarts the delay; call it on every mutation.
      A continuous stream of edits defers the write until input pauses.
    - `schedule()` arms a timer only when none is pending.
    - When the timer fires, `build_payload()` snapshots the current card and
      `write(payload)` persists it on the timer's thread. Write failures are
      logged and swallowed: local state stays authoritative, no retry, no
      rollback. `build_payload` may return None to skip the write.

    A generation counter makes a timer that was superseded (cancelled after it
    had already started firing) a no-op.
    """

    def __init__(
        self,
        *,
        delay: float,
        scheduler: Scheduler,
        build_payload: Callable[[], Optional[CardWrite]],
        write: Callable[[CardWrite], None],
    ) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self._delay = delay
        self._scheduler = scheduler
        self._build_payload = build_payload
        self._write = write
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._handle is not None

    def schedule(self) -> bool:
        """Arm the timer if idle. Returns False when one was already pending."""
        with self._lock:
            if self._handle is not None:
                return False
            self._arm_locked()
            return True

    def cancel_and_reschedule(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._arm_locked()

    def cancel(self) -> bool:
        """Drop the pending timer. Returns True if one was pending."""
        with self._lock:
            return self._cancel_locked()

    # -------- Internal --------
    def _arm_locked(self) -> None:
        self._generation += 1
        generation = self._generation
        self._handle = self._scheduler.call_later(self._delay, lambda: self._fire(generation))

    def _cancel_locked(self) -> bool:
        had_pending = self._handle is not None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        # Invalidate any callback already in flight
        self._generation += 1
        return had_pending

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._handle is None:
                return
            self._handle = None

        try:
            payload = self._build_payload()
        except Exception:
            log.exception("Failed to build debounced card write")
            return
        if payload is None:
            return

        try:
            self._write(payload)
        except Exception:
            log.exception("Debounced card write failed; local state kept")


__all__ = ["MutationDebouncer"]
