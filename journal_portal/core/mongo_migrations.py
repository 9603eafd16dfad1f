"""Versioned MongoDB index migrations for credential collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import pymongo
from pymongo.errors import PyMongoError

from journal_portal.core.config import StorageConfig
from journal_portal.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]


def _migration_01_identity_indexes(db: Any) -> None:
    db["auth_identities"].create_index("id", unique=True)
    db["auth_identities"].create_index("email", unique=True)


def _migration_02_revoked_token_ttl(db: Any) -> None:
    db["auth_revoked_tokens"].create_index("jti", unique=True)
    db["auth_revoked_tokens"].create_index(
        "expires_at_dt",
        expireAfterSeconds=0,
        name="idx_auth_revoked_tokens_expires_at_ttl",
    )


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20261001_01_identity_indexes", _migration_01_identity_indexes),
    ("20261001_02_revoked_token_ttl", _migration_02_revoked_token_ttl),
]


def run_mongo_migrations(db: Any) -> list[str]:
    """Apply pending migrations to ``db`` and return the ids applied."""
    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        applied.append(migration_id)
    return applied


def apply_mongo_migrations(storage: StorageConfig) -> None:
    """Apply MongoDB migrations if a Mongo URI is configured."""
    if not storage.mongo_uri:
        return

    client: Any = pymongo.MongoClient(storage.mongo_uri, serverSelectionTimeoutMS=3000)
    try:
        client.admin.command("ping")
        applied = run_mongo_migrations(client[storage.mongo_db])
        if applied:
            LOGGER.info("mongo_migrations_applied: %s", ", ".join(applied))
    except PyMongoError:
        LOGGER.warning("mongo_migrations_skipped", exc_info=True)
    finally:
        client.close()
