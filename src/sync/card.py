from __future__ import annotations

from typing import Callable, List, Optional

from state.models import CELL_COUNT, CardState


THEME_CHANNELS = ("background", "cell_color", "accent_color", "text_color")


class Card:
    """
    Mutable holder for the open card's state.

    Setters change one field, mark the card dirty and notify `on_mutate`
    (the session wires this to the debouncer). `replace` swaps the whole state
    without notifying; it is used for remote replacements and resets.
    """

    def __init__(self, state: Optional[CardState] = None, *, on_mutate: Optional[Callable[[], None]] = None) -> None:
        self._state = state if state is not None else CardState.default()
        self._on_mutate = on_mutate
        self.dirty = False

    @property
    def state(self) -> CardState:
        return self._state

    @property
    def title(self) -> str:
        return self._state.title

    def flags(self) -> List[bool]:
        return self._state.flags()

    def snapshot(self) -> CardState:
        """Deep copy, safe to serialize outside the session lock."""
        return self._state.model_copy(deep=True)

    def replace(self, state: CardState) -> None:
        self._state = state
        self.dirty = False

    # -------- Setters --------
    def set_cell_text(self, index: int, text: str) -> None:
        self._cell_index(index)
        self._state.cells[index].text = str(text)
        self._touch()

    def toggle_cell(self, index: int) -> bool:
        """Flip a cell's checked flag and return the new value."""
        self._cell_index(index)
        cell = self._state.cells[index]
        cell.checked = not cell.checked
        self._touch()
        return cell.checked

    def set_theme_color(self, channel: str, value: str) -> None:
        if channel not in THEME_CHANNELS:
            raise ValueError(f"unknown theme channel: {channel!r}")
        setattr(self._state.theme, channel, str(value))
        self._touch()

    def set_title(self, title: str) -> None:
        self._state.title = str(title)
        self._touch()

    # -------- Internal --------
    @staticmethod
    def _cell_index(index: int) -> None:
        if not 0 <= index < CELL_COUNT:
            raise IndexError(f"cell index out of range: {index}")

    def _touch(self) -> None:
        self.dirty = True
        if self._on_mutate is not None:
            self._on_mutate()


__all__ = ["Card", "THEME_CHANNELS"]
