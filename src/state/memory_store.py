from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from .models import CardSummary, CardWrite, PersistedRecord
from .store import CardNotFoundError, matches_filters, summary_from_row


RowListener = Callable[[str, Dict[str, Any]], None]


class InMemoryCardStore:
    """
    Process-local card store, used for tests and single-process demos.

    Rows are kept as plain dicts shaped like the `cards` table. When a
    `publish` callback is given (e.g. `ChangeFeed.publish`), every successful
    `update` pushes a copy of the full row, mimicking a database change stream.
    """

    def __init__(self, *, publish: Optional[RowListener] = None) -> None:
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._publish = publish

    def get(self, card_id: str) -> PersistedRecord:
        with self._lock:
            row = self._rows.get(card_id)
            if row is None:
                raise CardNotFoundError(card_id)
            return PersistedRecord.from_row(copy.deepcopy(row))

    def update(self, card_id: str, payload: CardWrite) -> None:
        with self._lock:
            row = self._rows.get(card_id)
            if row is None:
                raise CardNotFoundError(card_id)
            row.update(payload.to_row())
            snapshot = copy.deepcopy(row)
        if self._publish is not None:
            self._publish(card_id, snapshot)

    def insert(self, payload: CardWrite) -> str:
        card_id = uuid4().hex
        row = payload.to_row()
        row["id"] = card_id
        with self._lock:
            self._rows[card_id] = row
        return card_id

    def delete(self, card_id: str) -> None:
        with self._lock:
            self._rows.pop(card_id, None)

    def query(self, filters: Optional[Mapping[str, str]] = None) -> List[CardSummary]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._rows.values() if matches_filters(r, filters)]
        return [summary_from_row(r) for r in rows]

    def raw_row(self, card_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the stored row (None if missing); test helper."""
        with self._lock:
            row = self._rows.get(card_id)
            return copy.deepcopy(row) if row is not None else None


__all__ = ["InMemoryCardStore"]
