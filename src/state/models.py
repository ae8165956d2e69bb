from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


GRID_SIZE = 5
CELL_COUNT = GRID_SIZE * GRID_SIZE

DEFAULT_BACKGROUND = "#0b0f19"
DEFAULT_CELL_COLOR = "#1e263a"
DEFAULT_ACCENT_COLOR = "#6ee7ff"
DEFAULT_TEXT_COLOR = "#eef2ff"

# wire key -> legacy short key accepted on load
_THEME_LEGACY_KEYS = {
    "background": "bg",
    "cellColor": "cell",
    "accentColor": "accent",
    "textColor": "text",
}

_datetime_adapter = TypeAdapter(datetime)


class Cell(BaseModel):
    text: str = ""
    checked: bool = False


class Theme(BaseModel):
    """Four color channels of a card. Serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    background: str = DEFAULT_BACKGROUND
    cell_color: str = Field(default=DEFAULT_CELL_COLOR, alias="cellColor")
    accent_color: str = Field(default=DEFAULT_ACCENT_COLOR, alias="accentColor")
    text_color: str = Field(default=DEFAULT_TEXT_COLOR, alias="textColor")


def _default_cells() -> List[Cell]:
    return [Cell() for _ in range(CELL_COUNT)]


class CardState(BaseModel):
    """
    In-memory representation of one card.

    Fields
    - title: free text shown above the grid.
    - cells: exactly 25 entries, row-major over the 5x5 grid.
    - theme: background/cell/accent/text colors.

    Notes
    - Instances built from external data must go through `normalize_card_data`,
      which guarantees the 25-cell invariant without raising.
    """

    title: str = ""
    cells: List[Cell] = Field(default_factory=_default_cells)
    theme: Theme = Field(default_factory=Theme)

    @classmethod
    def default(cls) -> "CardState":
        return cls()

    def flags(self) -> List[bool]:
        """Checked flags in row-major order, as consumed by the detector."""
        return [cell.checked for cell in self.cells]

    def to_payload(self) -> Dict[str, Any]:
        """Encode as the persisted `data` payload."""
        return self.model_dump(by_alias=True)


def _theme_value(raw: Mapping[str, Any], key: str) -> Optional[str]:
    for candidate in (key, _THEME_LEGACY_KEYS[key]):
        val = raw.get(candidate)
        if isinstance(val, str) and val:
            return val
    return None


def normalize_card_data(raw: Any) -> CardState:
    """Build a valid CardState from an untrusted payload. Never raises.

    Starts from defaults and overlays only well-typed fields:
    - title when it is a string;
    - cells only when the payload holds exactly 25 entries, otherwise the whole
      cell list stays default (per cell: text when a string, checked coerced
      with `bool`);
    - each theme channel individually when it is a non-empty string. Legacy
      short keys (`bg`, `cell`, `accent`, `text`) are accepted too.
    """
    state = CardState.default()
    if not isinstance(raw, Mapping):
        return state

    title = raw.get("title")
    if isinstance(title, str):
        state.title = title

    cells = raw.get("cells")
    if isinstance(cells, list) and len(cells) == CELL_COUNT:
        normalized: List[Cell] = []
        for entry in cells:
            if not isinstance(entry, Mapping):
                normalized.append(Cell())
                continue
            text = entry.get("text")
            try:
                checked = bool(entry.get("checked"))
            except Exception:
                checked = False
            normalized.append(Cell(text=text if isinstance(text, str) else "", checked=checked))
        state.cells = normalized

    theme = raw.get("theme")
    if isinstance(theme, Mapping):
        values = {key: _theme_value(theme, key) for key in _THEME_LEGACY_KEYS}
        state.theme = Theme(**{k: v for k, v in values.items() if v is not None})

    return state


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime; None when absent or unparseable.

    Naive values are taken as UTC so that all timestamps stay comparable.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class CardWrite(BaseModel):
    """Payload for `update`/`insert` on a document store."""

    title: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime
    updated_by: Optional[str] = None
    room_id: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class PersistedRecord(BaseModel):
    """
    One card as stored at the storage boundary.

    `data` is kept raw (CardState-shaped but untrusted); callers normalize it
    with `normalize_card_data` / `card_from_record`.
    """

    id: str
    title: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "PersistedRecord":
        """Parse a raw store row (dict) without raising on bad field types."""
        if not isinstance(row, Mapping):
            row = {}
        raw_id = row.get("id")
        title = row.get("title")
        data = row.get("data")
        updated_by = row.get("updated_by")
        return cls(
            id=str(raw_id) if raw_id is not None else "",
            title=title if isinstance(title, str) else "",
            data=dict(data) if isinstance(data, Mapping) else {},
            updated_at=parse_timestamp(row.get("updated_at")),
            updated_by=updated_by if isinstance(updated_by, str) and updated_by else None,
        )


class CardSummary(BaseModel):
    id: str
    title: str = ""
    updated_at: Optional[datetime] = None


def card_from_record(record: PersistedRecord) -> CardState:
    """Normalize a record's payload; a non-empty title column wins over data.title."""
    state = normalize_card_data(record.data)
    if record.title:
        state.title = record.title
    return state


__all__ = [
    "GRID_SIZE",
    "CELL_COUNT",
    "Cell",
    "Theme",
    "CardState",
    "CardWrite",
    "CardSummary",
    "PersistedRecord",
    "normalize_card_data",
    "card_from_record",
    "parse_timestamp",
]
