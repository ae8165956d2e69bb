from __future__ import annotations

from datetime import UTC, datetime, timedelta

from state.models import CardState, PersistedRecord
from sync.card import Card
from sync.reconciler import RemoteReconciler


T0 = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _row(*, by: str | None, at, title: str = "remote", checked: int | None = 0) -> dict:
    cells = [{"text": "", "checked": False} for _ in range(25)]
    if checked is not None:
        cells[checked]["checked"] = True
    return {
        "id": "card-1",
        "title": title,
        "data": {"title": title, "cells": cells, "theme": {}},
        "updated_at": at.isoformat() if isinstance(at, datetime) else at,
        "updated_by": by,
    }


def _record(**kw) -> PersistedRecord:
    return PersistedRecord.from_row(_row(**kw))


def test_newer_foreign_event_replaces_card_and_advances():
    card = Card()
    card.set_title("local")
    rec = RemoteReconciler("me", T0)

    assert rec.consider(_record(by="other", at=T0 + timedelta(seconds=1)), card) is True
    assert card.title == "remote"
    assert card.state.cells[0].checked is True
    assert rec.last_applied == T0 + timedelta(seconds=1)


def test_own_echo_is_ignored_regardless_of_timestamp():
    for delta in (-10, 0, 1, 3600):
        card = Card()
        before = card.snapshot()
        rec = RemoteReconciler("me", T0)
        assert rec.consider(_record(by="me", at=T0 + timedelta(seconds=delta)), card) is False
        assert card.state == before
        assert rec.last_applied == T0


def test_stale_and_tied_events_are_ignored_regardless_of_origin():
    for delta in (0, -1, -3600):
        for origin in ("other", "third", None):
            card = Card()
            before = card.snapshot()
            rec = RemoteReconciler("me", T0)
            assert rec.consider(_record(by=origin, at=T0 + timedelta(seconds=delta)), card) is False
            assert card.state == before


def test_sequence_only_applies_strictly_increasing_timestamps():
    card = Card()
    rec = RemoteReconciler("me", T0)
    applied = []
    for i, delta in enumerate([5, 3, 5, 7, 6, 8]):
        ok = rec.consider(_record(by="other", at=T0 + timedelta(seconds=delta), title=f"v{i}"), card)
        applied.append(ok)
    assert applied == [True, False, False, True, False, True]
    assert card.title == "v5"


def test_no_baseline_accepts_any_timestamped_event():
    card = Card()
    rec = RemoteReconciler("me", None)
    assert rec.consider(_record(by="other", at=T0), card) is True


def test_event_without_timestamp_is_dropped():
    card = Card()
    rec = RemoteReconciler("me", None)
    assert rec.consider(_record(by="other", at="not-a-date"), card) is False
    assert card.state == CardState.default()


def test_unknown_origin_treats_every_writer_as_foreign():
    card = Card()
    rec = RemoteReconciler(None, T0)
    assert rec.consider(_record(by="anyone", at=T0 + timedelta(seconds=1)), card) is True


def test_malformed_payload_is_normalized_on_accept():
    card = Card()
    card.toggle_cell(4)
    rec = RemoteReconciler("me", T0)
    row = _row(by="other", at=T0 + timedelta(seconds=1))
    row["data"] = {"cells": [{"checked": True}] * 3}
    row["title"] = ""
    assert rec.consider(PersistedRecord.from_row(row), card) is True
    assert card.state == CardState.default()
