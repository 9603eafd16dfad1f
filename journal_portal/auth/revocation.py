"""Revocation registry for refresh and reset token ids."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Protocol

from pymongo.errors import DuplicateKeyError, PyMongoError

from journal_portal.auth.repository import CredentialStoreUnavailable


class RevocationRegistry(Protocol):
    """Single source of truth for token ids that must no longer be honored."""

    def revoke(self, revocation_id: str, *, expires_at: int | None = None) -> bool:
        """Revoke the id; return True only for the call that inserted it."""

    def is_revoked(self, revocation_id: str) -> bool:
        """Return whether the id has been revoked."""

    def purge_expired(self, now: int | None = None) -> int:
        """Drop entries whose tokens would have expired anyway."""


class InMemoryRevocationRegistry:
    """Process-local registry; correct for single-instance deployments only."""

    def __init__(self, *, default_ttl_seconds: int, purge_interval_seconds: int = 300) -> None:
        self._entries: dict[str, int] = {}
        self._lock = Lock()
        self._default_ttl_seconds = max(1, int(default_ttl_seconds))
        self._purge_interval_seconds = max(1, int(purge_interval_seconds))
        self._last_purge = int(time.time())

    def revoke(self, revocation_id: str, *, expires_at: int | None = None) -> bool:
        if not revocation_id:
            return False
        now = int(time.time())
        expiry = int(expires_at) if expires_at else now + self._default_ttl_seconds
        with self._lock:
            self._maybe_purge_locked(now)
            current = self._entries.get(revocation_id)
            if current is not None:
                # Keep the later horizon if the same id is revoked twice.
                self._entries[revocation_id] = max(current, expiry)
                return False
            self._entries[revocation_id] = expiry
            return True

    def is_revoked(self, revocation_id: str) -> bool:
        if not revocation_id:
            return False
        with self._lock:
            return revocation_id in self._entries

    def purge_expired(self, now: int | None = None) -> int:
        with self._lock:
            return self._purge_locked(int(now if now is not None else time.time()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _maybe_purge_locked(self, now: int) -> None:
        if now - self._last_purge >= self._purge_interval_seconds:
            self._purge_locked(now)

    def _purge_locked(self, now: int) -> int:
        expired = [key for key, expiry in self._entries.items() if expiry < now]
        for key in expired:
            del self._entries[key]
        self._last_purge = now
        return len(expired)


class MongoRevocationRegistry:
    """Registry shared across instances through a MongoDB collection.

    Relies on a unique index on ``jti`` for atomic insert and a TTL index on
    ``expires_at_dt`` for expiry (see ``core.mongo_migrations``).
    """

    def __init__(self, collection: Any, *, default_ttl_seconds: int) -> None:
        self._collection = collection
        self._default_ttl_seconds = max(1, int(default_ttl_seconds))

    def revoke(self, revocation_id: str, *, expires_at: int | None = None) -> bool:
        if not revocation_id:
            return False
        expiry = int(expires_at) if expires_at else int(time.time()) + self._default_ttl_seconds
        try:
            self._collection.insert_one(
                {
                    "jti": revocation_id,
                    "expires_at": expiry,
                    "expires_at_dt": datetime.fromtimestamp(expiry, tz=timezone.utc),
                }
            )
        except DuplicateKeyError:
            return False
        except PyMongoError as exc:
            raise CredentialStoreUnavailable("Revocation store unavailable") from exc
        return True

    def is_revoked(self, revocation_id: str) -> bool:
        if not revocation_id:
            return False
        try:
            return self._collection.find_one({"jti": revocation_id}, {"_id": 1}) is not None
        except PyMongoError as exc:
            raise CredentialStoreUnavailable("Revocation store unavailable") from exc

    def purge_expired(self, now: int | None = None) -> int:
        cutoff = int(now if now is not None else time.time())
        result = self._collection.delete_many({"expires_at": {"$lt": cutoff}})
        return int(getattr(result, "deleted_count", 0) or 0)
