from __future__ import annotations

from datetime import UTC, datetime

import pytest

from common.identity import IdentityError, RandomSessionIdentity, StaticIdentity
from state.memory_store import InMemoryCardStore
from state.models import CardState, CardWrite, card_from_record
from state.store import CardNotFoundError
from sync.library import create_card, list_cards, remove_card


def test_create_card_inserts_default_card_stamped_with_origin(clock):
    store = InMemoryCardStore()
    card_id = create_card(store, StaticIdentity("me"), title="2025", clock=clock)

    record = store.get(card_id)
    assert record.updated_by == "me"
    assert record.updated_at == datetime(2025, 1, 1, 0, 0, 1, tzinfo=UTC)
    state = card_from_record(record)
    assert state.title == "2025"
    assert state.cells == CardState.default().cells


def test_create_card_without_identity_raises():
    def _fail():
        raise OSError("offline")

    store = InMemoryCardStore()
    with pytest.raises(IdentityError):
        create_card(store, RandomSessionIdentity(_fail))
    assert store.query() == []


def test_list_cards_newest_first_with_undated_last(clock):
    store = InMemoryCardStore()
    ids = [create_card(store, StaticIdentity("me"), title=f"c{i}", clock=clock) for i in range(3)]
    undated = store.insert(CardWrite(title="old", data={}, updated_at=clock()))
    store._rows[undated].pop("updated_at")

    listed = list_cards(store)
    assert [s.id for s in listed] == [ids[2], ids[1], ids[0], undated]
    assert listed[0].title == "c2"


def test_list_cards_filters_by_room(clock):
    store = InMemoryCardStore()
    a = create_card(store, StaticIdentity("me"), room_id="r1", clock=clock)
    create_card(store, StaticIdentity("me"), room_id="r2", clock=clock)
    assert [s.id for s in list_cards(store, room_id="r1")] == [a]


def test_remove_card_deletes_and_is_quiet_for_unknown(clock):
    store = InMemoryCardStore()
    card_id = create_card(store, StaticIdentity("me"), clock=clock)
    remove_card(store, card_id)
    remove_card(store, card_id)
    with pytest.raises(CardNotFoundError):
        store.get(card_id)
