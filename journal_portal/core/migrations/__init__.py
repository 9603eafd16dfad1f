"""SQLite schema migrations for portal runtime tables."""

from journal_portal.core.migrations.runner import apply_migrations

__all__ = ["apply_migrations"]
