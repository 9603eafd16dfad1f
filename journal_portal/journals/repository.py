"""SQLite persistence for journals, saved-journal bookmarks and comments."""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from threading import Lock
from typing import Any

from journal_portal.auth.models import AuthenticatedIdentity
from journal_portal.core.migrations import apply_migrations
from journal_portal.journals.lifecycle import visibility_clause
from journal_portal.journals.models import Journal, JournalComment, JournalStats, ReviewStatus

_COLUMNS = (
    "author_id",
    "title",
    "abstract",
    "content",
    "pdf_url",
    "doi",
    "page_count",
    "review_status",
    "is_published",
    "reviewer_id",
    "review_notes",
    "review_date",
    "publication_date",
    "price",
    "view_count",
    "created_at",
    "updated_at",
)

# view_count only moves through increment_view_count.
_UPDATE_COLUMNS = tuple(
    column for column in _COLUMNS if column not in {"view_count", "created_at"}
)


def _row_to_journal(row: sqlite3.Row) -> Journal:
    data = {key: row[key] for key in ("id", *_COLUMNS)}
    data["is_published"] = bool(data["is_published"])
    return Journal.model_validate(data)


def _row_to_comment(row: sqlite3.Row) -> JournalComment:
    return JournalComment.model_validate(dict(row))


def _values(journal: Journal, columns: tuple[str, ...] = _COLUMNS) -> list[Any]:
    data = journal.model_dump()
    data["review_status"] = str(journal.review_status)
    data["is_published"] = 1 if journal.is_published else 0
    return [data[column] for column in columns]


class JournalRepository:
    """Journal storage on one SQLite connection guarded by a lock."""

    def __init__(self, database_path: Path) -> None:
        apply_migrations(database_path)
        self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._connection.execute("PRAGMA foreign_keys = ON")
        self._lock = Lock()

    def create(self, journal: Journal) -> Journal:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._lock:
            cursor = self._connection.execute(
                f"INSERT INTO journals({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                _values(journal),
            )
            self._connection.commit()
            journal_id = int(cursor.lastrowid)
        return journal.model_copy(update={"id": journal_id})

    def get(self, journal_id: int) -> Journal | None:
        with self._lock:
            row = self._connection.execute(
                "SELECT * FROM journals WHERE id = ?", (journal_id,)
            ).fetchone()
        return _row_to_journal(row) if row else None

    def update(self, journal: Journal) -> Journal:
        """Persist the editable columns and return the stored row."""
        assignments = ", ".join(f"{column} = ?" for column in _UPDATE_COLUMNS)
        with self._lock:
            self._connection.execute(
                f"UPDATE journals SET {assignments} WHERE id = ?",
                [*_values(journal, _UPDATE_COLUMNS), journal.id],
            )
            self._connection.commit()
            row = self._connection.execute(
                "SELECT * FROM journals WHERE id = ?", (journal.id,)
            ).fetchone()
        return _row_to_journal(row) if row else journal

    def delete(self, journal_id: int) -> bool:
        with self._lock:
            cursor = self._connection.execute(
                "DELETE FROM journals WHERE id = ?", (journal_id,)
            )
            self._connection.commit()
            return cursor.rowcount > 0

    def increment_view_count(self, journal_id: int) -> int:
        with self._lock:
            self._connection.execute(
                "UPDATE journals SET view_count = view_count + 1 WHERE id = ?",
                (journal_id,),
            )
            self._connection.commit()
            row = self._connection.execute(
                "SELECT view_count FROM journals WHERE id = ?", (journal_id,)
            ).fetchone()
        return int(row["view_count"]) if row else 0

    def list_visible(
        self,
        actor: AuthenticatedIdentity | None,
        *,
        limit: int = 50,
    ) -> list[tuple[Journal, bool]]:
        """Journals the actor may view, newest first, with the actor's saved flag.

        Visibility is filtered in SQL, never after loading rows.
        """
        clause, params = visibility_clause(actor, alias="j")
        saved_user = actor.id if actor is not None else ""
        with self._lock:
            rows = self._connection.execute(
                f"""
                SELECT j.*, s.user_id IS NOT NULL AS saved
                FROM journals j
                LEFT JOIN saved_journals s ON s.journal_id = j.id AND s.user_id = ?
                WHERE {clause}
                ORDER BY j.created_at DESC, j.id DESC
                LIMIT ?
                """,
                [saved_user, *params, int(limit)],
            ).fetchall()
        return [(_row_to_journal(row), bool(row["saved"])) for row in rows]

    def list_by_author(
        self,
        author_id: str,
        *,
        status: ReviewStatus | None = None,
    ) -> list[Journal]:
        query = "SELECT * FROM journals WHERE author_id = ?"
        params: list[Any] = [author_id]
        if status is not None:
            query += " AND review_status = ?"
            params.append(str(status))
        query += " ORDER BY created_at DESC, id DESC"
        with self._lock:
            rows = self._connection.execute(query, params).fetchall()
        return [_row_to_journal(row) for row in rows]

    def list_pending(self, *, limit: int = 100) -> list[Journal]:
        """Journals waiting for a review decision, oldest first."""
        with self._lock:
            rows = self._connection.execute(
                """
                SELECT * FROM journals
                WHERE review_status = ?
                ORDER BY created_at ASC, id ASC
                LIMIT ?
                """,
                (str(ReviewStatus.UNDER_REVIEW), int(limit)),
            ).fetchall()
        return [_row_to_journal(row) for row in rows]

    def save_for_user(self, user_id: str, journal_id: int) -> None:
        with self._lock:
            self._connection.execute(
                """
                INSERT INTO saved_journals(user_id, journal_id, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id, journal_id) DO NOTHING
                """,
                (user_id, journal_id, int(time.time())),
            )
            self._connection.commit()

    def unsave_for_user(self, user_id: str, journal_id: int) -> bool:
        with self._lock:
            cursor = self._connection.execute(
                "DELETE FROM saved_journals WHERE user_id = ? AND journal_id = ?",
                (user_id, journal_id),
            )
            self._connection.commit()
            return cursor.rowcount > 0

    def is_saved(self, user_id: str, journal_id: int) -> bool:
        with self._lock:
            row = self._connection.execute(
                "SELECT 1 FROM saved_journals WHERE user_id = ? AND journal_id = ?",
                (user_id, journal_id),
            ).fetchone()
        return row is not None

    def list_saved(self, user_id: str) -> list[Journal]:
        """Saved journals that are still published, most recently saved first."""
        with self._lock:
            rows = self._connection.execute(
                """
                SELECT j.* FROM saved_journals s
                JOIN journals j ON j.id = s.journal_id
                WHERE s.user_id = ? AND j.is_published = 1 AND j.review_status = ?
                ORDER BY s.created_at DESC, j.id DESC
                """,
                (user_id, str(ReviewStatus.PUBLISHED)),
            ).fetchall()
        return [_row_to_journal(row) for row in rows]

    def add_comment(self, comment: JournalComment) -> JournalComment:
        with self._lock:
            cursor = self._connection.execute(
                """
                INSERT INTO journal_comments(journal_id, user_id, parent_id, content, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    comment.journal_id,
                    comment.user_id,
                    comment.parent_id,
                    comment.content,
                    comment.created_at,
                ),
            )
            self._connection.commit()
            comment_id = int(cursor.lastrowid)
        return comment.model_copy(update={"id": comment_id})

    def get_comment(self, comment_id: int) -> JournalComment | None:
        with self._lock:
            row = self._connection.execute(
                "SELECT * FROM journal_comments WHERE id = ?", (comment_id,)
            ).fetchone()
        return _row_to_comment(row) if row else None

    def list_comments(self, journal_id: int) -> list[JournalComment]:
        """Comments and replies of one journal, oldest first."""
        with self._lock:
            rows = self._connection.execute(
                """
                SELECT * FROM journal_comments
                WHERE journal_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (journal_id,),
            ).fetchall()
        return [_row_to_comment(row) for row in rows]

    def journal_stats(self, *, since: int, top: int = 5) -> JournalStats:
        """Journal counters for the admin dashboard, aggregated in SQL.

        ``since`` bounds ``recent_submissions``; ``most_viewed`` holds the
        ``top`` published journals by view count.
        """
        published = (str(ReviewStatus.PUBLISHED),)
        with self._lock:
            status_rows = self._connection.execute(
                "SELECT review_status, COUNT(*) AS total FROM journals GROUP BY review_status"
            ).fetchall()
            totals = self._connection.execute(
                """
                SELECT
                  COUNT(*) AS total_journals,
                  COALESCE(SUM(is_published = 1 AND review_status = ?), 0) AS published_journals,
                  COALESCE(SUM(created_at >= ?), 0) AS recent_submissions,
                  COUNT(DISTINCT CASE
                    WHEN is_published = 1 AND review_status = ? THEN author_id
                  END) AS active_authors
                FROM journals
                """,
                (*published, int(since), *published),
            ).fetchone()
            comments = self._connection.execute(
                "SELECT COUNT(*) AS total FROM journal_comments"
            ).fetchone()
            top_rows = self._connection.execute(
                """
                SELECT * FROM journals
                WHERE is_published = 1 AND review_status = ?
                ORDER BY view_count DESC, id ASC
                LIMIT ?
                """,
                (*published, int(top)),
            ).fetchall()
        return JournalStats(
            total_journals=int(totals["total_journals"]),
            published_journals=int(totals["published_journals"]),
            status_counts={str(status): 0 for status in ReviewStatus}
            | {row["review_status"]: int(row["total"]) for row in status_rows},
            total_comments=int(comments["total"]),
            recent_submissions=int(totals["recent_submissions"]),
            active_authors=int(totals["active_authors"]),
            most_viewed=[_row_to_journal(row) for row in top_rows],
        )

    def close(self) -> None:
        with self._lock:
            self._connection.close()
