"""
Card state models and document stores.

This package defines the in-memory card schema, the parse-or-default
normalization applied to every payload read from outside, and the stores
that persist one record per card (in-memory, encrypted JSON on S3, and a
PostgREST table).
"""

from .models import CardState, CardSummary, CardWrite, PersistedRecord, normalize_card_data
from .store import CardNotFoundError, CardStore, StoreApiError, StoreError

__all__ = [
    "CardState",
    "CardSummary",
    "CardWrite",
    "PersistedRecord",
    "normalize_card_data",
    "CardStore",
    "StoreError",
    "StoreApiError",
    "CardNotFoundError",
]
