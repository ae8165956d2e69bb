"""
Sync engine for shared bingo cards.

Modules:
- card: mutable holder for the open card with narrow setters
- debounce: trailing-edge write coalescing
- reconciler: origin/timestamp filter for remote updates
- feeds: change streams (in-process push, store polling)
- session: SyncSession wiring the above for one open card
- library: create/list/remove cards
- config: environment configuration and backend construction
"""

from .session import SessionClosedError, SessionError, SessionLoadError, SessionState, SyncSession

__all__ = [
    "SyncSession",
    "SessionState",
    "SessionError",
    "SessionLoadError",
    "SessionClosedError",
]
