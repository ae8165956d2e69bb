from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from state.models import PersistedRecord, card_from_record

from .card import Card

log = logging.getLogger(__name__)


class RemoteReconciler:
    """
    Accepts or discards remote change notifications for the open card.

    An event is applied only when both hold:
    - it was written by another origin (a session never re-applies its own
      write), and
    - its `updated_at` is strictly newer than the last applied timestamp
      (older events and exact ties are dropped).

    Accepted events replace the whole card (last write wins, no field merge),
    even if local edits are still waiting in the debouncer. With no known
    origin every origin counts as foreign; with no baseline timestamp any
    timestamped event is newer. Events without a usable timestamp are dropped.
    """

    def __init__(self, origin_id: Optional[str], last_applied: Optional[datetime] = None) -> None:
        self._origin_id = origin_id
        self._last_applied = last_applied

    @property
    def last_applied(self) -> Optional[datetime]:
        return self._last_applied

    def accepts(self, record: PersistedRecord) -> bool:
        if self._origin_id is not None and record.updated_by == self._origin_id:
            return False
        if record.updated_at is None:
            return False
        if self._last_applied is not None and record.updated_at <= self._last_applied:
            return False
        return True

    def consider(self, record: PersistedRecord, card: Card) -> bool:
        """Apply `record` to `card` if accepted. Returns True when applied."""
        if not self.accepts(record):
            log.debug(
                "Discarding remote update card=%s by=%s at=%s (last applied %s)",
                record.id,
                record.updated_by,
                record.updated_at,
                self._last_applied,
            )
            return False
        card.replace(card_from_record(record))
        self._last_applied = record.updated_at
        return True


__all__ = ["RemoteReconciler"]
