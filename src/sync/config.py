from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from common.identity import IdentityProvider, RandomSessionIdentity
from common.timers import Scheduler
from state.memory_store import InMemoryCardStore
from state.postgrest_store import PostgrestCardStore
from state.s3_store import DEFAULT_PREFIX, S3CardStore
from state.store import CardStore

from .feeds import ChangeFeed, ChangeStream, PollingChangeFeed
from .session import SyncSession


# Environment variable names
ENV_STORE = "BINGO_STORE"  # memory | s3 | postgrest
ENV_DEBOUNCE_MS = "BINGO_DEBOUNCE_MS"
ENV_POLL_INTERVAL_SEC = "BINGO_POLL_INTERVAL_SEC"
ENV_STATE_BUCKET = "BINGO_STATE_BUCKET"
ENV_STATE_PREFIX = "BINGO_STATE_PREFIX"
ENV_FERNET_KEY = "BINGO_FERNET_KEY"
ENV_REST_URL = "BINGO_REST_URL"
ENV_REST_KEY = "BINGO_REST_KEY"

STORE_KINDS = ("memory", "s3", "postgrest")
DEFAULT_DEBOUNCE_MS = 400
DEFAULT_POLL_INTERVAL_SEC = 2.0


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _parse_number(raw: Optional[str], what: str, default: float) -> float:
    if raw is None:
        return default
    try:
        val = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid numeric configuration for {what}: {raw!r}") from exc
    if val < 0:
        raise RuntimeError(f"Configuration {what} must be >= 0, got {raw!r}")
    return val


@dataclass(frozen=True)
class SyncConfig:
    """
    Runtime configuration for the sync engine.

    - store: which document store backs cards ("memory", "s3", "postgrest")
    - debounce_ms: quiet period before a local edit is written
    - poll_interval_sec: change polling period for stores without push
    - bucket/prefix/fernet_key: S3 store settings
    - rest_url/rest_key: PostgREST store settings
    """

    store: str = "memory"
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC
    bucket: Optional[str] = None
    prefix: str = DEFAULT_PREFIX
    fernet_key: Optional[str] = None
    rest_url: Optional[str] = None
    rest_key: Optional[str] = None

    @property
    def debounce_sec(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_env(cls) -> "SyncConfig":
        store = (_getenv(ENV_STORE, "memory") or "memory").strip().lower()
        if store not in STORE_KINDS:
            raise RuntimeError(f"Unsupported {ENV_STORE}: {store!r} (expected one of {', '.join(STORE_KINDS)})")
        debounce_ms = int(_parse_number(_getenv(ENV_DEBOUNCE_MS), ENV_DEBOUNCE_MS, DEFAULT_DEBOUNCE_MS))
        poll = _parse_number(_getenv(ENV_POLL_INTERVAL_SEC), ENV_POLL_INTERVAL_SEC, DEFAULT_POLL_INTERVAL_SEC)
        if poll <= 0:
            raise RuntimeError(f"Configuration {ENV_POLL_INTERVAL_SEC} must be > 0")

        cfg = cls(
            store=store,
            debounce_ms=debounce_ms,
            poll_interval_sec=poll,
            bucket=_getenv(ENV_STATE_BUCKET),
            prefix=_getenv(ENV_STATE_PREFIX, DEFAULT_PREFIX) or DEFAULT_PREFIX,
            fernet_key=_getenv(ENV_FERNET_KEY),
            rest_url=_getenv(ENV_REST_URL),
            rest_key=_getenv(ENV_REST_KEY),
        )
        # Fail fast on missing backend settings
        if store == "s3":
            _require(cfg.bucket, ENV_STATE_BUCKET)
            _require(cfg.fernet_key, ENV_FERNET_KEY)
        elif store == "postgrest":
            _require(cfg.rest_url, ENV_REST_URL)
            _require(cfg.rest_key, ENV_REST_KEY)
        return cfg


def build_store(config: SyncConfig) -> CardStore:
    """Construct the document store selected by `config.store`."""
    if config.store == "s3":
        return S3CardStore(
            bucket=_require(config.bucket, ENV_STATE_BUCKET),
            prefix=config.prefix,
            fernet_key=_require(config.fernet_key, ENV_FERNET_KEY),
        )
    if config.store == "postgrest":
        return PostgrestCardStore(
            _require(config.rest_url, ENV_REST_URL),
            _require(config.rest_key, ENV_REST_KEY),
        )
    return InMemoryCardStore()


def build_backend(config: SyncConfig) -> Tuple[CardStore, ChangeStream]:
    """Store plus a matching change stream.

    The in-memory store pushes its own updates; the other stores are polled.
    """
    if config.store == "memory":
        feed = ChangeFeed()
        return InMemoryCardStore(publish=feed.publish), feed
    store = build_store(config)
    return store, PollingChangeFeed(store, interval=config.poll_interval_sec)


def open_session(
    card_id: str,
    *,
    identity: Optional[IdentityProvider] = None,
    config: Optional[SyncConfig] = None,
    store: Optional[CardStore] = None,
    feed: Optional[ChangeStream] = None,
    scheduler: Optional[Scheduler] = None,
    **callbacks: Any,
) -> SyncSession:
    """Build and open a SyncSession from configuration (env by default).

    Pass `store`/`feed` to share one backend between several sessions. A
    store given without a feed is polled. The `memory` store cannot be built
    here: a fresh in-memory store holds no cards, so pass the store (and its
    feed, from `build_backend`) explicitly.
    `scheduler` drives both the debouncer and a polling feed built here.
    `callbacks` are forwarded to SyncSession (on_first_completion, ...).
    """
    config = config or SyncConfig.from_env()
    if store is None:
        if config.store == "memory":
            raise RuntimeError(
                "open_session needs an explicit store for the memory backend; "
                "create one with build_backend() and pass store= and feed="
            )
        store, default_feed = build_backend(config)
        feed = feed or default_feed
    elif feed is None:
        feed = PollingChangeFeed(store, interval=config.poll_interval_sec, scheduler=scheduler)
    session = SyncSession(
        card_id,
        store=store,
        identity=identity or RandomSessionIdentity(),
        feed=feed,
        scheduler=scheduler,
        debounce_sec=config.debounce_sec,
        **callbacks,
    )
    return session.open()


__all__ = ["SyncConfig", "build_store", "build_backend", "open_session"]
