from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from common.bingo import LineResult
from common.identity import IdentityError, IdentityProvider
from common.timers import Scheduler, ThreadingScheduler
from common.tracker import CompletionTracker, TrackerPass
from state.models import CardState, CardWrite, PersistedRecord, card_from_record
from state.store import CardStore, StoreError

from .card import Card
from .debounce import MutationDebouncer
from .feeds import ChangeStream, Subscription
from .reconciler import RemoteReconciler

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SEC = 0.4


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    CLOSED = "closed"


class SessionError(RuntimeError):
    """Base error for sync sessions."""


class SessionLoadError(SessionError):
    """The card could not be loaded; the session is closed and cannot recover."""


class SessionClosedError(SessionError):
    """A mutation was attempted on a session that is not ready."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncSession:
    """
    Owns one open card: its state, completion tracker, debouncer, reconciler
    and change subscription.

    Lifecycle: LOADING -> READY -> CLOSED.
    - `open()` loads the record, subscribes to remote changes and runs a first
      completion pass (lines already complete on load celebrate once).
      A missing card or store failure closes the session and raises
      SessionLoadError; any other failure during `open()` also leaves it
      CLOSED. A closed session is never reopened.
    - Mutations are allowed only while READY. Each one restarts the debounce
      window; the write happens when edits pause.
    - `handle_remote(row)` applies a full-row change notification through the
      reconciler. Notifications that arrive outside READY are ignored. The
      completion pass runs even if `on_remote_change` raises.
    - `close()` cancels the pending write (an unflushed edit is lost) and
      unsubscribes. It is idempotent.

    All state access is serialized with one re-entrant lock, so timer and
    feed callbacks are processed one at a time.

    If the identity provider fails, the session still opens but cannot write:
    edits stay local and every timestamp-newer notification is applied.
    """

    def __init__(
        self,
        card_id: str,
        *,
        store: CardStore,
        identity: IdentityProvider,
        feed: Optional[ChangeStream] = None,
        scheduler: Optional[Scheduler] = None,
        debounce_sec: float = DEFAULT_DEBOUNCE_SEC,
        clock: Callable[[], datetime] = _utcnow,
        on_first_completion: Optional[Callable[[LineResult], None]] = None,
        on_any_complete: Optional[Callable[[bool], None]] = None,
        on_remote_change: Optional[Callable[[CardState], None]] = None,
    ) -> None:
        if not card_id:
            raise ValueError("card_id is required")
        self._card_id = card_id
        self._store = store
        self._identity = identity
        self._feed = feed
        self._clock = clock
        self._on_remote_change = on_remote_change
        self._lock = threading.RLock()
        self._state = SessionState.LOADING
        self._origin_id: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._card = Card(on_mutate=self._on_local_mutation)
        self._tracker = CompletionTracker(
            on_first_completion=on_first_completion,
            on_any_complete=on_any_complete,
        )
        self._reconciler = RemoteReconciler(origin_id=None)
        self._debouncer = MutationDebouncer(
            delay=debounce_sec,
            scheduler=scheduler or ThreadingScheduler(),
            build_payload=self._build_write,
            write=self._write,
        )

    # -------- Read access --------
    @property
    def card_id(self) -> str:
        return self._card_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def origin_id(self) -> Optional[str]:
        return self._origin_id

    @property
    def can_write(self) -> bool:
        return self._origin_id is not None

    @property
    def card(self) -> CardState:
        """Copy of the current card for rendering."""
        with self._lock:
            return self._card.snapshot()

    @property
    def write_pending(self) -> bool:
        return self._debouncer.pending

    @property
    def last_applied_remote(self) -> Optional[datetime]:
        return self._reconciler.last_applied

    def completed_lines(self) -> List[LineResult]:
        """Current lines for redraws; never fires celebration callbacks."""
        with self._lock:
            return self._tracker.peek(self._card.flags())

    # -------- Lifecycle --------
    def open(self) -> "SyncSession":
        with self._lock:
            if self._state is not SessionState.LOADING:
                raise SessionError(f"session for card {self._card_id} is {self._state.value}")

            try:
                self._load()
            except StoreError as exc:
                self._state = SessionState.CLOSED
                raise SessionLoadError(f"Failed to load card {self._card_id}") from exc
            except Exception:
                # Never left half-loaded; a failed open is not retried
                self._state = SessionState.CLOSED
                raise
            self._state = SessionState.READY
            log.debug("Opened card=%s origin=%s", self._card_id, self._origin_id)
            return self

    def close(self) -> None:
        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED
            if self._debouncer.cancel():
                log.info("Closing card=%s with an unsaved edit pending; it is dropped", self._card_id)
            if self._feed is not None and self._subscription is not None:
                self._feed.unsubscribe(self._subscription)
            self._subscription = None

    def __enter__(self) -> "SyncSession":
        if self._state is SessionState.LOADING:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------- Local mutations --------
    def set_cell_text(self, index: int, text: str) -> None:
        with self._lock:
            self._require_ready()
            self._card.set_cell_text(index, text)

    def toggle_cell(self, index: int) -> TrackerPass:
        with self._lock:
            self._require_ready()
            self._card.toggle_cell(index)
            return self._track()

    def set_theme_color(self, channel: str, value: str) -> None:
        with self._lock:
            self._require_ready()
            self._card.set_theme_color(channel, value)

    def set_title(self, title: str) -> None:
        with self._lock:
            self._require_ready()
            self._card.set_title(title)

    def reset_card(self) -> TrackerPass:
        """Restore defaults; completion memory starts over."""
        with self._lock:
            self._require_ready()
            self._card.replace(CardState.default())
            self._card.dirty = True
            self._tracker.reset()
            self._on_local_mutation()
            return self._track()

    # -------- Remote notifications --------
    def handle_remote(self, row: Dict[str, Any]) -> bool:
        """Apply a full-row notification. Returns True when it replaced the card."""
        record = PersistedRecord.from_row(row)
        with self._lock:
            if self._state is not SessionState.READY:
                return False
            if record.id and record.id != self._card_id:
                return False
            if not self._reconciler.consider(record, self._card):
                return False
            try:
                if self._on_remote_change is not None:
                    self._on_remote_change(self._card.snapshot())
            finally:
                # The card is already replaced; completion must follow it
                self._track()
            return True

    # -------- Internal --------
    def _load(self) -> None:
        try:
            self._origin_id = self._identity.origin_id()
        except IdentityError:
            log.warning("No session identity for card=%s; edits will not be saved", self._card_id)
            self._origin_id = None

        record = self._store.get(self._card_id)
        self._card.replace(card_from_record(record))
        self._reconciler = RemoteReconciler(self._origin_id, record.updated_at)
        self._tracker.reset()
        self._tracker.update(self._card.flags())

        if self._feed is not None:
            self._subscription = self._feed.subscribe(self._card_id, self.handle_remote)

    def _require_ready(self) -> None:
        if self._state is not SessionState.READY:
            raise SessionClosedError(f"session for card {self._card_id} is {self._state.value}")

    def _track(self) -> TrackerPass:
        return self._tracker.update(self._card.flags())

    def _on_local_mutation(self) -> None:
        self._debouncer.cancel_and_reschedule()

    def _build_write(self) -> Optional[CardWrite]:
        with self._lock:
            if self._state is not SessionState.READY:
                return None
            if self._origin_id is None:
                log.warning("Skipping save of card=%s: no session identity", self._card_id)
                return None
            snapshot = self._card.snapshot()
            self._card.dirty = False
            return CardWrite(
                title=snapshot.title,
                data=snapshot.to_payload(),
                updated_at=self._clock(),
                updated_by=self._origin_id,
            )

    def _write(self, payload: CardWrite) -> None:
        self._store.update(self._card_id, payload)
        log.debug("Saved card=%s at %s", self._card_id, payload.updated_at)


__all__ = [
    "SyncSession",
    "SessionState",
    "SessionError",
    "SessionLoadError",
    "SessionClosedError",
]
