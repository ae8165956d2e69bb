from __future__ import annotations

from datetime import UTC, datetime
from typing import Callable, List, Optional

from common.identity import IdentityError, IdentityProvider
from state.models import CardState, CardSummary, CardWrite
from state.store import CardStore


def _utcnow() -> datetime:
    return datetime.now(UTC)


def create_card(
    store: CardStore,
    identity: IdentityProvider,
    *,
    title: str = "",
    room_id: Optional[str] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> str:
    """Insert a default card and return its id.

    Raises IdentityError when no origin id is available: creating a card is a
    write, and every write must carry its author.
    """
    origin = identity.origin_id()
    if not origin:
        raise IdentityError("Cannot create a card without a session identity")
    state = CardState.default()
    state.title = title
    payload = CardWrite(
        title=title,
        data=state.to_payload(),
        updated_at=clock(),
        updated_by=origin,
        room_id=room_id,
    )
    return store.insert(payload)


def _sort_key(summary: CardSummary) -> tuple:
    # Newest first; undated cards last; id breaks ties deterministically
    ts = summary.updated_at.timestamp() if summary.updated_at is not None else float("-inf")
    return (-ts, summary.id)


def list_cards(store: CardStore, *, room_id: Optional[str] = None) -> List[CardSummary]:
    """Summaries of the stored cards, most recently updated first."""
    filters = {"room_id": room_id} if room_id is not None else None
    return sorted(store.query(filters), key=_sort_key)


def remove_card(store: CardStore, card_id: str) -> None:
    store.delete(card_id)


__all__ = ["create_card", "list_cards", "remove_card"]
