from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from cryptography.fernet import Fernet, InvalidToken

from .models import CardSummary, CardWrite, PersistedRecord
from .store import CardNotFoundError, StoreApiError, matches_filters, summary_from_row


DEFAULT_PREFIX = "cards/"

_NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


def _dump_row_json(row: Dict[str, Any]) -> bytes:
    # Deterministic JSON: stable key order, no extra whitespace
    return json.dumps(row, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _error_code(e: ClientError) -> Optional[str]:
    return e.response.get("Error", {}).get("Code")


@dataclass
class S3Location:
    bucket: str
    prefix: str

    def key_for(self, card_id: str) -> str:
        return f"{self.prefix}{card_id}.json"

    def id_from_key(self, key: str) -> Optional[str]:
        if not key.startswith(self.prefix) or not key.endswith(".json"):
            return None
        return key[len(self.prefix) : -len(".json")] or None


class S3CardStore:
    """
    S3-backed card store, one Fernet-encrypted JSON object per card.

    Layout
    - `s3://{bucket}/{prefix}{card_id}.json` holds the full row:
      `{id, title, data, updated_at, updated_by[, room_id]}`.

    Semantics
    - `get` raises CardNotFoundError when the object is missing.
    - `update` merges the payload into the existing row and puts it back (last
      write wins, no conditional put); it raises CardNotFoundError if the card was
      deleted meanwhile.
    - `query` lists the prefix and decrypts each object; unreadable objects are
      skipped rather than failing the whole listing.
    - Any other S3 or connection failure surfaces as StoreApiError.

    Construction from environment goes through `sync.config.build_store`.
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        prefix: str = DEFAULT_PREFIX,
        fernet_key: str | bytes,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._loc = S3Location(bucket=bucket, prefix=prefix)
        self._fernet = _to_fernet(fernet_key)

    # -------- Internal object I/O --------
    def _read_row(self, key: str) -> Dict[str, Any]:
        """Read and decrypt one object. S3 error responses propagate as ClientError."""
        try:
            resp = self._s3.get_object(Bucket=self._loc.bucket, Key=key)
            body = resp["Body"].read()
        except BotoCoreError as ex:
            raise StoreApiError(f"S3 get_object failed for {key}") from ex
        try:
            decrypted = self._fernet.decrypt(body)
        except InvalidToken as ex:
            raise StoreApiError(f"Failed to decrypt card object {key}: invalid Fernet token") from ex
        try:
            raw = json.loads(decrypted.decode("utf-8"))
        except ValueError as ex:
            raise StoreApiError(f"Failed to parse decrypted card JSON for {key}") from ex
        if not isinstance(raw, dict):
            raise StoreApiError(f"Card object {key} is not a JSON object")
        return raw

    def _write_row(self, key: str, row: Dict[str, Any]) -> None:
        ciphertext = self._fernet.encrypt(_dump_row_json(row))
        try:
            self._s3.put_object(
                Bucket=self._loc.bucket,
                Key=key,
                Body=ciphertext,
                ContentType="application/octet-stream",
            )
        except (ClientError, BotoCoreError) as ex:
            raise StoreApiError(f"S3 put_object failed for {key}") from ex

    # -------- Core operations --------
    def _load(self, card_id: str) -> Dict[str, Any]:
        key = self._loc.key_for(card_id)
        try:
            row = self._read_row(key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise CardNotFoundError(card_id) from e
            raise StoreApiError(f"S3 get_object failed for {key}: {_error_code(e)}") from e
        row["id"] = card_id
        return row

    def get(self, card_id: str) -> PersistedRecord:
        return PersistedRecord.from_row(self._load(card_id))

    def update(self, card_id: str, payload: CardWrite) -> None:
        # Columns not in the payload (e.g. room_id) are kept
        row = self._load(card_id)
        row.update(payload.to_row())
        self._write_row(self._loc.key_for(card_id), row)

    def insert(self, payload: CardWrite) -> str:
        card_id = uuid4().hex
        row = payload.to_row()
        row["id"] = card_id
        self._write_row(self._loc.key_for(card_id), row)
        return card_id

    def delete(self, card_id: str) -> None:
        key = self._loc.key_for(card_id)
        try:
            self._s3.delete_object(Bucket=self._loc.bucket, Key=key)
        except (ClientError, BotoCoreError) as ex:
            raise StoreApiError(f"S3 delete_object failed for {key}") from ex

    def query(self, filters: Optional[Mapping[str, str]] = None) -> List[CardSummary]:
        out: List[CardSummary] = []
        token: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {"Bucket": self._loc.bucket, "Prefix": self._loc.prefix}
            if token:
                kwargs["ContinuationToken"] = token
            try:
                resp = self._s3.list_objects_v2(**kwargs)
            except (ClientError, BotoCoreError) as ex:
                raise StoreApiError(f"S3 list_objects_v2 failed for prefix {self._loc.prefix}") from ex
            for obj in resp.get("Contents", []) or []:
                key = obj.get("Key", "")
                card_id = self._loc.id_from_key(key)
                if card_id is None:
                    continue
                try:
                    row = self._read_row(key)
                except (ClientError, StoreApiError):
                    # Deleted between list and get, or unreadable; skip it
                    continue
                row["id"] = card_id
                if matches_filters(row, filters):
                    out.append(summary_from_row(row))
            if not resp.get("IsTruncated"):
                break
            token = resp.get("NextContinuationToken")
            if not token:
                break
        return out


__all__ = ["S3CardStore", "S3Location"]
