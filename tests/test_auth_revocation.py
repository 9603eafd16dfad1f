from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from journal_portal.auth.repository import CredentialStoreUnavailable
from journal_portal.auth.revocation import (
    InMemoryRevocationRegistry,
    MongoRevocationRegistry,
)


def test_in_memory_registry_revoke_is_test_and_set() -> None:
    registry = InMemoryRevocationRegistry(default_ttl_seconds=60)

    assert registry.is_revoked("j1") is False
    assert registry.revoke("j1") is True
    assert registry.revoke("j1") is False
    assert registry.is_revoked("j1") is True
    assert registry.revoke("") is False


def test_in_memory_registry_concurrent_revoke_has_single_winner() -> None:
    registry = InMemoryRevocationRegistry(default_ttl_seconds=60)
    barrier = threading.Barrier(16)
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        won = registry.revoke("shared-jti")
        with results_lock:
            results.append(won)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert len(results) == 16


def test_in_memory_registry_purges_only_expired_entries() -> None:
    registry = InMemoryRevocationRegistry(default_ttl_seconds=60)
    now = int(time.time())
    registry.revoke("old", expires_at=now - 10)
    registry.revoke("live", expires_at=now + 3600)

    purged = registry.purge_expired(now)

    assert purged == 1
    assert registry.is_revoked("old") is False
    assert registry.is_revoked("live") is True
    assert len(registry) == 1


def test_in_memory_registry_keeps_later_horizon_on_repeat() -> None:
    registry = InMemoryRevocationRegistry(default_ttl_seconds=60)
    now = int(time.time())
    registry.revoke("j1", expires_at=now + 10)
    registry.revoke("j1", expires_at=now + 1000)

    registry.purge_expired(now + 100)

    assert registry.is_revoked("j1") is True


@dataclass
class _Result:
    deleted_count: int


@dataclass
class _Collection:
    docs: dict[str, dict[str, Any]] = field(default_factory=dict)
    down: bool = False

    def insert_one(self, doc: dict[str, Any]) -> None:
        if self.down:
            raise ServerSelectionTimeoutError("down")
        if doc["jti"] in self.docs:
            raise DuplicateKeyError("duplicate jti")
        self.docs[doc["jti"]] = doc

    def find_one(self, query: dict[str, Any], projection: Any = None) -> dict | None:
        if self.down:
            raise ServerSelectionTimeoutError("down")
        return self.docs.get(query["jti"])

    def delete_many(self, query: dict[str, Any]) -> _Result:
        cutoff = query["expires_at"]["$lt"]
        expired = [key for key, doc in self.docs.items() if doc["expires_at"] < cutoff]
        for key in expired:
            del self.docs[key]
        return _Result(deleted_count=len(expired))


def test_mongo_registry_duplicate_key_means_already_revoked() -> None:
    collection = _Collection()
    registry = MongoRevocationRegistry(collection, default_ttl_seconds=60)

    assert registry.revoke("j1", expires_at=int(time.time()) + 60) is True
    assert registry.revoke("j1") is False
    assert registry.is_revoked("j1") is True
    assert collection.docs["j1"]["expires_at_dt"].tzinfo is not None


def test_mongo_registry_outage_surfaces_as_store_unavailable() -> None:
    registry = MongoRevocationRegistry(_Collection(down=True), default_ttl_seconds=60)

    with pytest.raises(CredentialStoreUnavailable):
        registry.revoke("j1")
    with pytest.raises(CredentialStoreUnavailable):
        registry.is_revoked("j1")


def test_mongo_registry_purge_deletes_expired() -> None:
    collection = _Collection()
    registry = MongoRevocationRegistry(collection, default_ttl_seconds=60)
    now = int(time.time())
    registry.revoke("old", expires_at=now - 1)
    registry.revoke("live", expires_at=now + 60)

    assert registry.purge_expired(now) == 1
    assert set(collection.docs) == {"live"}
