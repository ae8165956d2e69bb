from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Sequence

from .bingo import LineResult, detect_lines


@dataclass(frozen=True)
class TrackerPass:
    """Outcome of one tracker pass.

    - lines: every currently complete line (for drawing)
    - newly_complete: lines complete now but not on the previous pass
    - any_complete: True when at least one line is complete
    """

    lines: List[LineResult]
    newly_complete: List[LineResult]
    any_complete: bool


class CompletionTracker:
    """
    Edge-triggered wrapper around `detect_lines`.

    Remembers the keys complete on the previous pass and reports only the
    difference. `reset()` forgets them; call it only when a different card is
    loaded or the card is reset to defaults, never on a redraw.
    """

    def __init__(
        self,
        *,
        on_first_completion: Optional[Callable[[LineResult], None]] = None,
        on_any_complete: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self._previous: FrozenSet[str] = frozenset()
        self._on_first_completion = on_first_completion
        self._on_any_complete = on_any_complete

    @property
    def previously_complete(self) -> FrozenSet[str]:
        return self._previous

    def reset(self) -> None:
        self._previous = frozenset()

    def peek(self, flags: Sequence[bool]) -> List[LineResult]:
        """Current lines without touching memory or firing callbacks."""
        return detect_lines(flags)

    def update(self, flags: Sequence[bool]) -> TrackerPass:
        current = detect_lines(flags)
        newly = [line for line in current if line.key not in self._previous]
        self._previous = frozenset(line.key for line in current)

        if self._on_first_completion is not None:
            for line in newly:
                self._on_first_completion(line)
        any_complete = bool(current)
        if self._on_any_complete is not None:
            self._on_any_complete(any_complete)
        return TrackerPass(lines=current, newly_complete=newly, any_complete=any_complete)


__all__ = ["CompletionTracker", "TrackerPass"]
