import os
import sys
from datetime import UTC, datetime, timedelta

import pytest


def pytest_configure():
    # Ensure `src/` is importable as top-level for `common.*`, `state.*`, `sync.*` imports
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    src_path = os.path.join(root, "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


class _FakeTimer:
    def __init__(self, when: float, fn, seq: int) -> None:
        self.when = when
        self.fn = fn
        self.seq = seq
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual scheduler: timers fire only when the test advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers = []
        self._seq = 0

    def call_later(self, delay, fn):
        self._seq += 1
        timer = _FakeTimer(self.now + delay, fn, self._seq)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, dt: float) -> None:
        target = self.now + dt
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self.now = timer.when
            timer.fn()
        self._timers = [t for t in self._timers if not t.cancelled]
        self.now = target


class FakeClock:
    """Returns strictly increasing UTC datetimes, one second apart."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, tzinfo=UTC)) -> None:
        self.t = start

    def __call__(self) -> datetime:
        self.t = self.t + timedelta(seconds=1)
        return self.t


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
