"""Public API response contracts."""

from journal_portal.api.contracts.models import (
    ApiErrorResponse,
    CommentListResponse,
    CommentResponse,
    DeleteJournalResponse,
    FieldErrorResponse,
    HealthResponse,
    IdentityListResponse,
    IdentityResponse,
    JournalListResponse,
    JournalResponse,
    JournalStatsResponse,
    PasswordResetRequestedResponse,
    RefreshResponse,
    RegisterResponse,
    SavedJournalResponse,
    StatusResponse,
)

__all__ = [
    "ApiErrorResponse",
    "CommentListResponse",
    "CommentResponse",
    "DeleteJournalResponse",
    "FieldErrorResponse",
    "HealthResponse",
    "IdentityListResponse",
    "IdentityResponse",
    "JournalListResponse",
    "JournalResponse",
    "JournalStatsResponse",
    "PasswordResetRequestedResponse",
    "RefreshResponse",
    "RegisterResponse",
    "SavedJournalResponse",
    "StatusResponse",
]
