"""
In-memory store for Xero tokens, one record per user.
A record can be reached through several identifiers (email and the ID token's sub):
one canonical record per user plus an alias index, so both keys always see the same tokens.
Expiry is enforced on read only (lazy eviction); there is no background sweep.
"""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


def _iso(ms: float) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class TokenRecord:
    access_token: str
    expires_at: float
    stored_at: float
    refresh_token: str | None = None
    tenant_id: str | None = None

    @classmethod
    def issue(
        cls,
        access_token: str,
        expires_in: int,
        refresh_token: str | None = None,
        tenant_id: str | None = None,
    ) -> "TokenRecord":
        """Build a record whose expiry is stored_at + expires_in seconds (both in epoch ms)."""
        stored_at = _now_ms()
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=stored_at + int(expires_in) * 1000,
            tenant_id=tenant_id,
            stored_at=stored_at,
        )

    def expired(self, now_ms: float | None = None) -> bool:
        now = _now_ms() if now_ms is None else now_ms
        return now >= self.expires_at


class TokenStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, TokenRecord] = {}
        # identifier -> canonical user id
        self._aliases: dict[str, str] = {}

    def _resolve(self, user_id: str) -> str:
        return self._aliases.get(user_id, user_id)

    def _drop(self, canonical: str) -> None:
        self._records.pop(canonical, None)
        for alias in [a for a, c in self._aliases.items() if c == canonical]:
            del self._aliases[alias]

    def store(self, user_id: str, tokens: TokenRecord, aliases: Iterable[str] = ()) -> None:
        """
        Insert or fully replace the record for user_id; aliases resolve to the same record.
        Storing through an alias replaces the canonical record, so every key sees the update.
        """
        logger.info("Storing tokens for user %s", user_id)
        with self._lock:
            canonical = self._resolve(user_id)
            self._records[canonical] = tokens
            for alias in aliases:
                if not alias or alias == canonical:
                    continue
                if alias in self._records:
                    # alias previously held its own copy; fold it into this record
                    self._drop(alias)
                self._aliases[alias] = canonical

    def get(self, user_id: str) -> TokenRecord | None:
        """Unexpired record for user_id (or one of its aliases), else None. Expired records are removed."""
        with self._lock:
            canonical = self._resolve(user_id)
            record = self._records.get(canonical)
            if record is None:
                logger.warning("No tokens found for user %s", user_id)
                return None
            if record.expired():
                logger.warning("Tokens expired for user %s", user_id)
                self._drop(canonical)
                return None
            return record

    def clear(self, user_id: str) -> None:
        logger.info("Clearing tokens for user %s", user_id)
        with self._lock:
            canonical = self._resolve(user_id)
            self._drop(canonical)
            self._aliases.pop(user_id, None)

    def has_valid(self, user_id: str) -> bool:
        record = self.get(user_id)
        return record is not None and bool(record.access_token)

    def access_token(self, user_id: str) -> str | None:
        record = self.get(user_id)
        return record.access_token if record else None

    def tenant_id(self, user_id: str) -> str | None:
        record = self.get(user_id)
        return record.tenant_id if record else None

    def list_all(self) -> dict[str, dict]:
        """Redacted summary per canonical user id (development diagnostics). Never includes token values."""
        with self._lock:
            result = {}
            for user_id, record in self._records.items():
                result[user_id] = {
                    "hasAccessToken": bool(record.access_token),
                    "hasRefreshToken": bool(record.refresh_token),
                    "expiresAt": _iso(record.expires_at),
                    "tenantId": record.tenant_id,
                    "storedAt": _iso(record.stored_at),
                    "aliases": sorted(a for a, c in self._aliases.items() if c == user_id),
                }
            return result
