from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Sequence, Tuple


GRID_SIZE = 5
CELL_COUNT = GRID_SIZE * GRID_SIZE

LineKind = Literal["row", "column", "diagonal"]


@dataclass(frozen=True)
class LineResult:
    """A completed line on the grid.

    Attributes
    - kind: "row", "column" or "diagonal"
    - index: 0..4 for rows/columns; 0 (top-left to bottom-right) or 1
      (top-right to bottom-left) for diagonals
    - cells: the 5 row-major grid positions, in order along the line
    """

    kind: LineKind
    index: int
    cells: Tuple[int, ...]

    @property
    def key(self) -> str:
        return line_key(self)


def line_key(line: LineResult) -> str:
    """Stable identity of a line across detection passes, e.g. "row-0"."""
    return f"{line.kind}-{line.index}"


def _candidate_lines() -> Tuple[LineResult, ...]:
    lines: List[LineResult] = []
    for row in range(GRID_SIZE):
        lines.append(LineResult("row", row, tuple(row * GRID_SIZE + col for col in range(GRID_SIZE))))
    for col in range(GRID_SIZE):
        lines.append(LineResult("column", col, tuple(row * GRID_SIZE + col for row in range(GRID_SIZE))))
    lines.append(LineResult("diagonal", 0, tuple(i * GRID_SIZE + i for i in range(GRID_SIZE))))
    lines.append(
        LineResult("diagonal", 1, tuple(i * GRID_SIZE + (GRID_SIZE - 1 - i) for i in range(GRID_SIZE)))
    )
    return tuple(lines)


# Rows, then columns, then the two diagonals
CANDIDATE_LINES: Tuple[LineResult, ...] = _candidate_lines()


def detect_lines(flags: Sequence[bool]) -> List[LineResult]:
    """Return every line whose 5 cells are all checked.

    `flags` is the row-major sequence of 25 checked markers. Output order
    follows CANDIDATE_LINES. Raises ValueError on a wrong-sized input.
    """
    if len(flags) != CELL_COUNT:
        raise ValueError(f"expected {CELL_COUNT} flags, got {len(flags)}")
    return [line for line in CANDIDATE_LINES if all(flags[i] for i in line.cells)]


__all__ = [
    "LineResult",
    "LineKind",
    "CANDIDATE_LINES",
    "detect_lines",
    "line_key",
]
