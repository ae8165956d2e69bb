from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from common.timers import Scheduler, ThreadingScheduler, TimerHandle
from state.store import CardStore

log = logging.getLogger(__name__)

EventCallback = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class Subscription:
    card_id: str
    token: int


class ChangeStream(Protocol):
    """Push stream of full-row updates for one card id at a time."""

    def subscribe(self, card_id: str, on_event: EventCallback) -> Subscription: ...

    def unsubscribe(self, handle: Subscription) -> None: ...


class ChangeFeed:
    """
    In-process fan-out of row updates, keyed by card id.

    Pair it with `InMemoryCardStore(publish=feed.publish)` to get a change
    stream shaped like a database realtime channel. A failing listener is
    logged and does not prevent delivery to the others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._subs: Dict[int, Tuple[str, EventCallback]] = {}

    def subscribe(self, card_id: str, on_event: EventCallback) -> Subscription:
        with self._lock:
            token = next(self._tokens)
            self._subs[token] = (card_id, on_event)
        return Subscription(card_id=card_id, token=token)

    def unsubscribe(self, handle: Subscription) -> None:
        with self._lock:
            self._subs.pop(handle.token, None)

    def subscriber_count(self, card_id: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for cid, _ in self._subs.values() if card_id is None or cid == card_id)

    def publish(self, card_id: str, row: Dict[str, Any]) -> int:
        """Deliver `row` to every subscriber of `card_id`; returns the count."""
        with self._lock:
            targets: List[EventCallback] = [cb for cid, cb in self._subs.values() if cid == card_id]
        for cb in targets:
            try:
                cb(dict(row))
            except Exception:
                log.exception("Change listener failed for card=%s", card_id)
        return len(targets)


class _PollState:
    def __init__(self, card_id: str, on_event: EventCallback) -> None:
        self.card_id = card_id
        self.on_event = on_event
        self.active = True
        self.last_seen: Optional[datetime] = None
        self.handle: Optional[TimerHandle] = None


class PollingChangeFeed:
    """
    Change stream for stores without push support.

    Every `interval` seconds each subscription re-reads its card and delivers
    the row when `updated_at` moved since the last delivery. The first poll
    always delivers; the receiving reconciler discards anything not newer than
    what it already applied. Store errors are logged and polling continues.
    """

    def __init__(
        self,
        store: CardStore,
        *,
        interval: float = 2.0,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._store = store
        self._interval = interval
        self._scheduler = scheduler or ThreadingScheduler(name="bingo-poll")
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._polls: Dict[int, _PollState] = {}

    def subscribe(self, card_id: str, on_event: EventCallback) -> Subscription:
        poll = _PollState(card_id, on_event)
        with self._lock:
            token = next(self._tokens)
            self._polls[token] = poll
            poll.handle = self._scheduler.call_later(self._interval, lambda: self._tick(token))
        return Subscription(card_id=card_id, token=token)

    def unsubscribe(self, handle: Subscription) -> None:
        with self._lock:
            poll = self._polls.pop(handle.token, None)
            if poll is None:
                return
            poll.active = False
            if poll.handle is not None:
                poll.handle.cancel()
                poll.handle = None

    def _tick(self, token: int) -> None:
        with self._lock:
            poll = self._polls.get(token)
            if poll is None or not poll.active:
                return

        row: Optional[Dict[str, Any]] = None
        try:
            record = self._store.get(poll.card_id)
        except Exception:
            log.exception("Polling card=%s failed; will retry", poll.card_id)
        else:
            if record.updated_at is not None and record.updated_at != poll.last_seen:
                poll.last_seen = record.updated_at
                row = record.model_dump(mode="json")

        if row is not None and poll.active:
            try:
                poll.on_event(row)
            except Exception:
                log.exception("Change listener failed for card=%s", poll.card_id)

        with self._lock:
            if poll.active and token in self._polls:
                poll.handle = self._scheduler.call_later(self._interval, lambda: self._tick(token))


__all__ = ["ChangeStream", "ChangeFeed", "PollingChangeFeed", "Subscription", "EventCallback"]
