"""Pydantic models for the authentication domain."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field


class Role(StrEnum):
    """Account roles."""

    USER = "USER"
    AUTHOR = "AUTHOR"
    ADMIN = "ADMIN"


class ProfileStatus(StrEnum):
    """Whether the post-registration profile form has been filled in."""

    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"


class Identity(BaseModel):
    """Persisted identity record."""

    id: str
    email: str
    password_hash: str
    name: str = ""
    role: Role = Role.USER
    profile_status: ProfileStatus = ProfileStatus.INCOMPLETE
    institution: str = ""
    department: str = ""
    position: str = ""
    bio: str = ""
    credentials_changed_at: int = 0  # epoch milliseconds
    created_at: int = 0

    def to_public(self) -> "IdentityPublic":
        return IdentityPublic.model_validate(self.model_dump(exclude={"password_hash"}))


class IdentityPublic(BaseModel):
    """Identity fields safe to return to clients."""

    id: str
    email: str
    name: str = ""
    role: Role
    profile_status: ProfileStatus
    institution: str = ""
    department: str = ""
    position: str = ""
    bio: str = ""
    created_at: int = 0


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Identity attached to a request by the authorization guard."""

    id: str
    role: Role
    email: str


class RegisterRequest(BaseModel):
    """Registration request payload."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)


class LoginRequest(BaseModel):
    """Login request payload."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """Optional body for refresh and logout when no header or cookie is sent."""

    refresh_token: str | None = None


class ChangePasswordRequest(BaseModel):
    """Password change request payload."""

    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class PasswordResetRequest(BaseModel):
    """Password reset request payload."""

    email: str = Field(min_length=3)


class ResetPasswordRequest(BaseModel):
    """Password reset confirmation payload."""

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class CreateAuthorRequest(BaseModel):
    """Admin request to create an author account."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    institution: str = ""
    bio: str = ""
