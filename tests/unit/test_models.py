from __future__ import annotations

from datetime import UTC, datetime

from state.models import (
    CardState,
    CardWrite,
    PersistedRecord,
    card_from_record,
    normalize_card_data,
    parse_timestamp,
)


def _payload() -> dict:
    return {
        "title": "2025 goals",
        "cells": [{"text": f"Goal {i}", "checked": i % 3 == 0} for i in range(25)],
        "theme": {
            "background": "#000000",
            "cellColor": "#111111",
            "accentColor": "#222222",
            "textColor": "#333333",
        },
    }


def test_default_card_shape():
    state = CardState.default()
    assert state.title == ""
    assert len(state.cells) == 25
    assert all(c.text == "" and c.checked is False for c in state.cells)
    assert state.theme.background == "#0b0f19"
    assert state.theme.cell_color == "#1e263a"
    assert state.theme.accent_color == "#6ee7ff"
    assert state.theme.text_color == "#eef2ff"


def test_normalize_round_trip_preserves_everything():
    payload = _payload()
    state = normalize_card_data(payload)
    assert state.to_payload() == payload
    assert normalize_card_data(state.to_payload()) == state


def test_normalize_non_mapping_yields_default():
    for raw in (None, 42, "cells", [1, 2, 3]):
        assert normalize_card_data(raw) == CardState.default()


def test_wrong_cell_count_replaces_cells_wholesale():
    payload = _payload()
    payload["cells"] = payload["cells"][:24]
    state = normalize_card_data(payload)
    assert state.cells == CardState.default().cells
    # Other fields are still taken
    assert state.title == "2025 goals"
    assert state.theme.background == "#000000"


def test_ill_typed_fields_fall_back_individually():
    cells = [{"text": 5, "checked": "yes"}, None, "x"] + [{"text": "ok"}] * 22
    state = normalize_card_data({"title": 123, "cells": cells, "theme": {"background": "", "textColor": "#abcdef"}})
    assert state.title == ""
    assert state.cells[0].text == "" and state.cells[0].checked is True
    assert state.cells[1].text == "" and state.cells[1].checked is False
    assert state.cells[2].text == ""
    assert state.cells[3].text == "ok" and state.cells[3].checked is False
    assert state.theme.background == "#0b0f19"
    assert state.theme.cell_color == "#1e263a"
    assert state.theme.text_color == "#abcdef"


def test_legacy_theme_keys_accepted():
    state = normalize_card_data({"theme": {"bg": "#010101", "cell": "#020202", "accent": "#030303", "text": "#040404"}})
    assert state.theme.background == "#010101"
    assert state.theme.cell_color == "#020202"
    assert state.theme.accent_color == "#030303"
    assert state.theme.text_color == "#040404"


def test_flags_row_major():
    state = normalize_card_data(_payload())
    assert state.flags() == [i % 3 == 0 for i in range(25)]


def test_parse_timestamp_variants():
    aware = parse_timestamp("2025-01-02T03:04:05+00:00")
    assert aware == datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)
    naive = parse_timestamp("2025-01-02T03:04:05")
    assert naive == aware
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(True) is None


def test_record_from_row_is_tolerant():
    record = PersistedRecord.from_row(
        {"id": 7, "title": None, "data": "oops", "updated_at": "garbage", "updated_by": ""}
    )
    assert record.id == "7"
    assert record.title == ""
    assert record.data == {}
    assert record.updated_at is None
    assert record.updated_by is None

    empty = PersistedRecord.from_row(None)
    assert empty.id == ""


def test_card_from_record_title_column_wins_when_set():
    record = PersistedRecord.from_row({"id": "c1", "title": "Column title", "data": _payload()})
    assert card_from_record(record).title == "Column title"

    untitled = PersistedRecord.from_row({"id": "c1", "title": "", "data": _payload()})
    assert card_from_record(untitled).title == "2025 goals"


def test_card_write_row_is_json_ready():
    write = CardWrite(
        title="t",
        data=CardState.default().to_payload(),
        updated_at=datetime(2025, 1, 1, tzinfo=UTC),
        updated_by="origin-a",
    )
    row = write.to_row()
    assert row["updated_at"].startswith("2025-01-01T00:00:00")
    assert row["updated_by"] == "origin-a"
    assert "room_id" not in row
    assert len(row["data"]["cells"]) == 25
