"""Credential store for identities with MongoDB primary and file-store fallback."""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from threading import Lock
from typing import Any, Callable, TypeVar

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from journal_portal.auth.models import Identity

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class CredentialStoreUnavailable(RuntimeError):
    """The credential store cannot be reached; callers may retry later."""


class EmailAlreadyRegistered(ValueError):
    """An identity with the same normalized e-mail already exists."""


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class CredentialRepository:
    """Identity repository backed by MongoDB, or a JSON file when Mongo is not configured."""

    def __init__(
        self,
        data_dir: Path,
        *,
        mongo_uri: str = "",
        mongo_db: str = "journal_portal",
        mongo_client: Any = None,
    ) -> None:
        """Initialize repository storage backends."""
        self._fallback_dir = data_dir / "auth_store"
        self._fallback_dir.mkdir(parents=True, exist_ok=True)
        self._identities_file = self._fallback_dir / "identities.json"
        self._file_lock = Lock()

        self._mongo_identities = None
        if mongo_client is None and mongo_uri:
            mongo_client = MongoClient(mongo_uri, serverSelectionTimeoutMS=3000)
        if mongo_client is not None:
            self._mongo_identities = mongo_client[mongo_db]["auth_identities"]

    @property
    def uses_mongo(self) -> bool:
        return self._mongo_identities is not None

    def _mongo(self, op: Callable[[Any], T]) -> T:
        try:
            return op(self._mongo_identities)
        except DuplicateKeyError:
            raise
        except PyMongoError as exc:
            LOGGER.error("credential_store_unavailable", exc_info=True)
            raise CredentialStoreUnavailable("Credential store unavailable") from exc

    def _read_json_file(self) -> list[dict[str, Any]]:
        """Read identity rows with empty fallback for missing or corrupted files."""
        if not self._identities_file.exists():
            return []
        try:
            payload = json.loads(self._identities_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("identity_file_unreadable", exc_info=True)
            return []
        return payload if isinstance(payload, list) else []

    def _write_json_file(self, items: list[dict[str, Any]]) -> None:
        self._identities_file.write_text(
            json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8"
        )

    def get_by_email(self, email: str) -> Identity | None:
        """Get identity by normalized e-mail."""
        key = normalize_email(email)
        if self._mongo_identities is not None:
            doc = self._mongo(lambda col: col.find_one({"email": key}, {"_id": 0}))
            return Identity.model_validate(doc) if doc else None

        with self._file_lock:
            rows = self._read_json_file()
        for row in rows:
            if normalize_email(str(row.get("email", ""))) == key:
                return Identity.model_validate(row)
        return None

    def get_by_id(self, identity_id: str) -> Identity | None:
        """Get identity by id."""
        if not identity_id:
            return None
        if self._mongo_identities is not None:
            doc = self._mongo(lambda col: col.find_one({"id": identity_id}, {"_id": 0}))
            return Identity.model_validate(doc) if doc else None

        with self._file_lock:
            rows = self._read_json_file()
        for row in rows:
            if str(row.get("id", "")) == identity_id:
                return Identity.model_validate(row)
        return None

    def create(self, identity: Identity) -> Identity:
        """Insert a new identity, raising ``EmailAlreadyRegistered`` on duplicates."""
        identity = identity.model_copy(update={"email": normalize_email(identity.email)})
        doc = identity.model_dump(mode="json")
        if self._mongo_identities is not None:
            try:
                self._mongo(lambda col: col.insert_one(dict(doc)))
            except DuplicateKeyError as exc:
                raise EmailAlreadyRegistered(identity.email) from exc
            return identity

        with self._file_lock:
            items = self._read_json_file()
            if any(normalize_email(str(row.get("email", ""))) == identity.email for row in items):
                raise EmailAlreadyRegistered(identity.email)
            items.append(doc)
            self._write_json_file(items)
        return identity

    def update(self, identity: Identity) -> Identity:
        """Replace the stored identity with the same id."""
        doc = identity.model_dump(mode="json")
        if self._mongo_identities is not None:
            self._mongo(
                lambda col: col.update_one({"id": identity.id}, {"$set": doc}, upsert=False)
            )
            return identity

        with self._file_lock:
            items = self._read_json_file()
            next_items = [row for row in items if str(row.get("id", "")) != identity.id]
            next_items.append(doc)
            self._write_json_file(next_items)
        return identity

    def list_identities(self, limit: int = 100) -> list[Identity]:
        """List identities ordered by creation time, newest first."""
        if self._mongo_identities is not None:
            docs = self._mongo(
                lambda col: list(
                    col.find({}, {"_id": 0}).sort("created_at", -1).limit(limit)
                )
            )
            return [Identity.model_validate(doc) for doc in docs]

        with self._file_lock:
            rows = self._read_json_file()
        rows.sort(key=lambda row: int(row.get("created_at") or 0), reverse=True)
        return [Identity.model_validate(row) for row in rows[:limit]]

    def count_by_role(self) -> dict[str, int]:
        """Number of identities per role."""
        if self._mongo_identities is not None:
            docs = self._mongo(
                lambda col: list(
                    col.aggregate([{"$group": {"_id": "$role", "count": {"$sum": 1}}}])
                )
            )
            return {str(doc["_id"]): int(doc["count"]) for doc in docs}

        with self._file_lock:
            rows = self._read_json_file()
        return dict(Counter(str(row.get("role", "")) for row in rows))

    def count_created_since(self, since: int) -> int:
        if self._mongo_identities is not None:
            return int(
                self._mongo(lambda col: col.count_documents({"created_at": {"$gte": since}}))
            )

        with self._file_lock:
            rows = self._read_json_file()
        return sum(1 for row in rows if int(row.get("created_at") or 0) >= since)
