"""Pydantic models for journals and their review workflow."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReviewStatus(StrEnum):
    """Review workflow states."""

    DRAFT = "DRAFT"
    UNDER_REVIEW = "UNDER_REVIEW"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"
    REVISIONS_NEEDED = "REVISIONS_NEEDED"


class Journal(BaseModel):
    """Persisted journal record."""

    id: int = 0
    author_id: str
    title: str
    abstract: str
    content: str = ""
    pdf_url: str = ""
    doi: str = ""
    page_count: int | None = None
    review_status: ReviewStatus = ReviewStatus.DRAFT
    is_published: bool = False
    reviewer_id: str | None = None
    review_notes: str | None = None
    review_date: int | None = None
    publication_date: int | None = None
    price: float | None = None
    view_count: int = 0
    created_at: int = 0
    updated_at: int = 0

    def to_public(self, *, saved: bool = False) -> "JournalPublic":
        return JournalPublic(**self.model_dump(), saved=saved)


class JournalPublic(Journal):
    """Journal as returned to clients, with the requester's bookmark flag."""

    saved: bool = False


class JournalCreateRequest(BaseModel):
    """New submission payload."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=500)
    abstract: str = Field(min_length=1)
    content: str = ""
    pdf_url: str = ""
    doi: str = ""
    page_count: int | None = Field(default=None, ge=0)
    submit_for_review: bool = True


class JournalUpdateRequest(BaseModel):
    """Editable journal fields; review fields are set only through review."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=500)
    abstract: str | None = Field(default=None, min_length=1)
    content: str | None = None
    pdf_url: str | None = None
    doi: str | None = None
    page_count: int | None = Field(default=None, ge=0)


class ReviewRequest(BaseModel):
    """Admin review decision.

    ``review_status`` and ``price`` are checked by the lifecycle so that bad
    values come back as field errors with status 400.
    """

    model_config = ConfigDict(extra="forbid")

    review_status: Any = None
    review_notes: str | None = None
    price: Any = None
    is_published: bool | None = None


class JournalComment(BaseModel):
    """Reader comment on a published journal; ``parent_id`` marks a reply."""

    id: int = 0
    journal_id: int
    user_id: str
    parent_id: int | None = None
    content: str
    created_at: int = 0


class CommentCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = ""
    parent_id: int | None = None


class JournalStats(BaseModel):
    """Admin dashboard counters."""

    total_journals: int = 0
    published_journals: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)
    total_comments: int = 0
    recent_submissions: int = 0
    active_authors: int = 0
    most_viewed: list[Journal] = Field(default_factory=list)
    users_by_role: dict[str, int] = Field(default_factory=dict)
    total_users: int = 0
    new_users: int = 0
