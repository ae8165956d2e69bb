"""
Common utilities for shared bingo cards.

Modules:
- bingo: pure line detection over the 5x5 grid
- tracker: edge-triggered completion tracking
- timers: cancellable timer abstraction
- identity: per-session origin identifiers
"""

__all__ = [
    "bingo",
    "tracker",
    "timers",
    "identity",
]
