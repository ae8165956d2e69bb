from __future__ import annotations

import itertools
import random

from common.bingo import detect_lines
from common.tracker import CompletionTracker


def _flags(*checked: int) -> list[bool]:
    out = [False] * 25
    for i in checked:
        out[i] = True
    return out


ROW0 = (0, 1, 2, 3, 4)
COL0 = (0, 5, 10, 15, 20)


def test_second_pass_with_same_input_reports_nothing_new():
    tracker = CompletionTracker()
    flags = _flags(*ROW0)

    first = tracker.update(flags)
    second = tracker.update(flags)

    assert [l.key for l in first.newly_complete] == ["row-0"]
    assert second.newly_complete == []
    assert second.any_complete is True


def test_callbacks_fire_once_per_new_line_and_badge_every_pass():
    fired = []
    badge = []
    tracker = CompletionTracker(on_first_completion=lambda l: fired.append(l.key), on_any_complete=badge.append)

    tracker.update(_flags(*ROW0))
    tracker.update(_flags(*ROW0))
    tracker.update(_flags(*ROW0, *COL0))
    tracker.update(_flags())

    assert fired == ["row-0", "column-0"]
    assert badge == [True, True, True, False]


def test_line_that_breaks_and_completes_again_fires_again():
    tracker = CompletionTracker()
    tracker.update(_flags(*ROW0))
    tracker.update(_flags(0, 1, 2, 3))
    again = tracker.update(_flags(*ROW0))
    assert [l.key for l in again.newly_complete] == ["row-0"]


def test_reset_forgets_previous_lines():
    tracker = CompletionTracker()
    tracker.update(_flags(*ROW0))
    tracker.reset()
    assert tracker.previously_complete == frozenset()
    assert [l.key for l in tracker.update(_flags(*ROW0)).newly_complete] == ["row-0"]


def test_peek_does_not_touch_memory_or_callbacks():
    fired = []
    tracker = CompletionTracker(on_first_completion=fired.append)
    lines = tracker.peek(_flags(*ROW0))
    assert [l.key for l in lines] == ["row-0"]
    assert fired == []
    # The real pass still reports the line as new
    assert len(tracker.update(_flags(*ROW0)).newly_complete) == 1


def test_newly_complete_is_set_difference_with_previous_pass_only():
    rng = random.Random(7)
    states = [[rng.random() < 0.7 for _ in range(25)] for _ in range(40)]
    tracker = CompletionTracker()
    prev_keys: set[str] = set()
    for flags in states:
        result = tracker.update(flags)
        current = {l.key for l in detect_lines(flags)}
        assert {l.key for l in result.newly_complete} == current - prev_keys
        prev_keys = current


def test_history_before_previous_pass_is_irrelevant():
    a = _flags(*ROW0)
    b = _flags(*COL0)
    c = _flags(*ROW0, *COL0)
    results = []
    for history in itertools.permutations([a, b]):
        tracker = CompletionTracker()
        for flags in history:
            tracker.update(flags)
        tracker.update(b)
        results.append({l.key for l in tracker.update(c).newly_complete})
    assert results == [{"row-0"}, {"row-0"}]
