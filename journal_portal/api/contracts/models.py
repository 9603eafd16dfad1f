"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from journal_portal.auth.models import IdentityPublic
from journal_portal.journals.models import JournalComment, JournalPublic, JournalStats


class FieldErrorResponse(BaseModel):
    """One field-level validation problem."""

    field: str
    message: str


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    errors: list[FieldErrorResponse] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class IdentityResponse(BaseModel):
    """Single identity payload."""

    identity: IdentityPublic


class RegisterResponse(BaseModel):
    """Registration response payload."""

    identity: IdentityPublic
    requires_profile_completion: bool


class RefreshResponse(BaseModel):
    """Successful token rotation payload."""

    subject_id: str
    role: str


class StatusResponse(BaseModel):
    """Generic acknowledgement payload."""

    status: Literal["ok"]
    message: str = ""


class PasswordResetRequestedResponse(BaseModel):
    """Password reset request acknowledgement.

    ``reset_token`` is only populated in development environments.
    """

    status: Literal["ok"]
    message: str
    reset_token: str | None = None


class IdentityListResponse(BaseModel):
    """Admin identity listing payload."""

    items: list[IdentityPublic]


class JournalResponse(BaseModel):
    """Single journal payload."""

    journal: JournalPublic


class JournalListResponse(BaseModel):
    """Journal listing payload."""

    items: list[JournalPublic]


class SavedJournalResponse(BaseModel):
    """Save/unsave acknowledgement payload."""

    journal_id: int
    saved: bool


class DeleteJournalResponse(BaseModel):
    """Delete journal response payload."""

    journal_id: int
    deleted: bool


class CommentResponse(BaseModel):
    """Single comment payload."""

    comment: JournalComment


class CommentListResponse(BaseModel):
    items: list[JournalComment]


class JournalStatsResponse(BaseModel):
    """Admin dashboard counters."""

    stats: JournalStats
