from __future__ import annotations

from typing import List, Mapping, Optional, Protocol

from .models import CardSummary, CardWrite, PersistedRecord


class StoreError(RuntimeError):
    """Base error for card document stores."""


class CardNotFoundError(StoreError):
    """The requested card does not exist in the store."""

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class StoreApiError(StoreError):
    """The backing service returned an error or an unexpected payload."""


class CardStore(Protocol):
    """
    Document store holding one record per card.

    - `get` raises CardNotFoundError for unknown ids.
    - `update` replaces title/data/updated_at/updated_by of an existing card.
    - `insert` creates a card and returns its id.
    - `query` returns listing summaries, optionally filtered by column equality.

    No ordering guarantee beyond the `updated_at` supplied by writers.
    """

    def get(self, card_id: str) -> PersistedRecord: ...

    def update(self, card_id: str, payload: CardWrite) -> None: ...

    def insert(self, payload: CardWrite) -> str: ...

    def delete(self, card_id: str) -> None: ...

    def query(self, filters: Optional[Mapping[str, str]] = None) -> List[CardSummary]: ...


def matches_filters(row: Mapping[str, object], filters: Optional[Mapping[str, str]]) -> bool:
    """Column-equality filter shared by stores that filter client-side."""
    if not filters:
        return True
    return all(str(row.get(k)) == str(v) for k, v in filters.items())


def summary_from_row(row: Mapping[str, object]) -> CardSummary:
    record = PersistedRecord.from_row(row)
    return CardSummary(id=record.id, title=record.title, updated_at=record.updated_at)


__all__ = [
    "CardStore",
    "StoreError",
    "CardNotFoundError",
    "StoreApiError",
    "matches_filters",
    "summary_from_row",
]
