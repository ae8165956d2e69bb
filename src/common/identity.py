from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol
from uuid import uuid4


class IdentityError(RuntimeError):
    """No origin identifier could be obtained for this session."""


class IdentityProvider(Protocol):
    def origin_id(self) -> str: ...


class StaticIdentity:
    """Identity fixed at construction, e.g. an authenticated user id."""

    def __init__(self, origin: str) -> None:
        if not origin:
            raise IdentityError("origin id must be a non-empty string")
        self._origin = origin

    def origin_id(self) -> str:
        return self._origin


class RandomSessionIdentity:
    """
    Lazily resolves an origin id once and returns it on every later call.

    By default a random uuid4 hex is generated (the equivalent of an anonymous
    sign-in). A custom `factory` can sign in against a real auth backend; any
    exception it raises, or an empty result, surfaces as IdentityError and the
    next call tries again.
    """

    def __init__(self, factory: Optional[Callable[[], str]] = None) -> None:
        self._factory = factory or (lambda: uuid4().hex)
        self._origin: Optional[str] = None
        self._lock = threading.Lock()

    def origin_id(self) -> str:
        with self._lock:
            if self._origin is None:
                try:
                    origin = self._factory()
                except Exception as exc:
                    raise IdentityError("Failed to obtain a session identity") from exc
                if not isinstance(origin, str) or not origin:
                    raise IdentityError("Identity factory returned an empty origin id")
                self._origin = origin
            return self._origin


__all__ = ["IdentityError", "IdentityProvider", "StaticIdentity", "RandomSessionIdentity"]
