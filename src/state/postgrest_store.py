from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from .models import CardSummary, CardWrite, PersistedRecord
from .store import CardNotFoundError, StoreApiError, StoreError, summary_from_row


DEFAULT_TABLE = "cards"
RECORD_COLUMNS = "id,title,data,updated_at,updated_by"
SUMMARY_COLUMNS = "id,title,updated_at"

_RETRY_STATUSES = (429, 500, 502, 503, 504)


class PostgrestCardStore:
    """
    Card store over a PostgREST endpoint (e.g. Supabase `/rest/v1`).

    Notes
    - Expects a `cards` table with columns id, title, data (json), updated_at,
      updated_by and optionally room_id.
    - Filters use PostgREST syntax (`id=eq.<id>`); `query` orders newest first.
    - Retries transport errors and 429/5xx with exponential backoff, honoring
      a numeric `Retry-After` header when provided. Other HTTP errors raise
      StoreApiError immediately.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = DEFAULT_TABLE,
        access_token: Optional[str] = None,
        timeout: float = 15.0,
        max_attempts: int = 5,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        self._table = table
        self._max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._owns_client = client is None
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Accept": "application/json",
        }
        if client is None:
            self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, headers=headers)
        else:
            self._client = client
            self._client.headers.update(headers)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "PostgrestCardStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def get(self, card_id: str) -> PersistedRecord:
        rows = self._request("GET", params={"id": f"eq.{card_id}", "select": RECORD_COLUMNS})
        if not rows:
            raise CardNotFoundError(card_id)
        return PersistedRecord.from_row(rows[0])

    def update(self, card_id: str, payload: CardWrite) -> None:
        rows = self._request(
            "PATCH",
            params={"id": f"eq.{card_id}", "select": "id"},
            json_body=payload.to_row(),
            prefer="return=representation",
        )
        if not rows:
            raise CardNotFoundError(card_id)

    def insert(self, payload: CardWrite) -> str:
        rows = self._request(
            "POST",
            params={"select": "id"},
            json_body=payload.to_row(),
            prefer="return=representation",
        )
        if not rows or not isinstance(rows[0], dict) or rows[0].get("id") is None:
            raise StoreApiError("Insert did not return the new card id")
        return str(rows[0]["id"])

    def delete(self, card_id: str) -> None:
        self._request("DELETE", params={"id": f"eq.{card_id}"}, prefer="return=minimal")

    def query(self, filters: Optional[Mapping[str, str]] = None) -> List[CardSummary]:
        params: Dict[str, str] = {"select": SUMMARY_COLUMNS, "order": "updated_at.desc"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        rows = self._request("GET", params=params)
        return [summary_from_row(r) for r in rows if isinstance(r, dict)]

    # --------------- Internal ---------------
    def _request(
        self,
        method: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> List[Any]:
        headers = {"Prefer": prefer} if prefer else {}
        attempt = 0
        backoff = 0.5
        last_exc: Optional[Exception] = None
        while attempt < self._max_attempts:
            try:
                resp = self._client.request(
                    method, f"/{self._table}", params=params, json=json_body, headers=headers
                )
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_exc = exc
            else:
                if resp.status_code in (200, 201):
                    try:
                        data = resp.json()
                    except ValueError as exc:
                        raise StoreApiError("Failed to parse JSON from PostgREST") from exc
                    if not isinstance(data, list):
                        raise StoreApiError("Expected a JSON array from PostgREST")
                    return data
                if resp.status_code == 204:
                    return []

                if resp.status_code in _RETRY_STATUSES:
                    retry_after: Optional[float] = None
                    try:
                        retry_after = float(resp.headers.get("Retry-After", ""))
                    except ValueError:
                        pass
                    self._sleep(min(retry_after if retry_after is not None else backoff, 10.0))
                    backoff = min(backoff * 2, 8.0)
                    attempt += 1
                    last_exc = StoreApiError(f"HTTP {resp.status_code} from PostgREST")
                    continue

                # Non-retryable HTTP error
                raise StoreApiError(f"HTTP {resp.status_code} from PostgREST: {resp.text[:200]}")

            # Transport error path
            attempt += 1
            self._sleep(backoff)
            backoff = min(backoff * 2, 8.0)

        if last_exc is not None:
            raise StoreError(f"{method} /{self._table} failed after {self._max_attempts} attempts") from last_exc
        raise StoreError(f"{method} /{self._table} failed after retries (unknown error)")


__all__ = ["PostgrestCardStore"]
