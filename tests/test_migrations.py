from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from journal_portal.core.migrations import apply_migrations
from journal_portal.core.mongo_migrations import MIGRATIONS, run_mongo_migrations


def test_apply_migrations_creates_portal_tables(tmp_path: Path) -> None:
    db_path = tmp_path / "state.db"

    applied = apply_migrations(db_path)

    connection = sqlite3.connect(str(db_path))
    try:
        cursor = connection.cursor()
        tables = {
            row[0]
            for row in cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }

        assert {
            "schema_migrations",
            "auth_login_attempts",
            "journals",
            "saved_journals",
            "journal_comments",
        } <= tables
        assert applied == [
            "0001_auth_login_rate_limit.sql",
            "0002_journals.sql",
            "0003_saved_journals.sql",
            "0004_journal_comments.sql",
        ]
    finally:
        connection.close()


def test_apply_migrations_is_idempotent(tmp_path: Path) -> None:
    db_path = tmp_path / "state.db"

    apply_migrations(db_path)

    assert apply_migrations(db_path) == []


def test_journals_table_rejects_published_flag_without_published_status(
    tmp_path: Path,
) -> None:
    db_path = tmp_path / "state.db"
    apply_migrations(db_path)

    connection = sqlite3.connect(str(db_path))
    try:
        try:
            connection.execute(
                """
                INSERT INTO journals(author_id, title, abstract, review_status,
                                     is_published, created_at, updated_at)
                VALUES ('u1', 't', 'a', 'UNDER_REVIEW', 1, 0, 0)
                """
            )
        except sqlite3.IntegrityError:
            rejected = True
        else:
            rejected = False
    finally:
        connection.close()

    assert rejected is True


class _Collection:
    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []
        self.indexes: list[tuple[Any, dict[str, Any]]] = []

    def create_index(self, keys: Any, **kwargs: Any) -> str:
        self.indexes.append((keys, kwargs))
        return str(keys)

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        return next(
            (doc for doc in self.docs if doc["migration_id"] == query["migration_id"]),
            None,
        )

    def insert_one(self, doc: dict[str, Any]) -> None:
        self.docs.append(doc)


class _Database(dict):
    def __missing__(self, name: str) -> _Collection:
        collection = _Collection()
        self[name] = collection
        return collection


def test_run_mongo_migrations_creates_unique_and_ttl_indexes() -> None:
    db = _Database()

    applied = run_mongo_migrations(db)

    assert applied == [migration_id for migration_id, _ in MIGRATIONS]
    revoked_indexes = db["auth_revoked_tokens"].indexes
    assert ("jti", {"unique": True}) in revoked_indexes
    assert any(kwargs.get("expireAfterSeconds") == 0 for _, kwargs in revoked_indexes)
    assert run_mongo_migrations(db) == []
