"""Request models for profile completion and admin user management."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from journal_portal.auth.models import Role


class CompleteProfileRequest(BaseModel):
    """Post-registration profile form."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    is_researcher: bool = False
    institution: str = ""
    department: str = ""
    position: str = ""
    bio: str = ""


class ToggleResearcherRequest(BaseModel):
    """Researcher details required when a USER becomes an AUTHOR."""

    model_config = ConfigDict(extra="forbid")

    institution: str = ""
    department: str = ""
    position: str = ""


class AdminUserUpdateRequest(BaseModel):
    """Fields an administrator may change on any account."""

    model_config = ConfigDict(extra="forbid")

    role: Role | None = None
    name: str | None = Field(default=None, min_length=1)
    institution: str | None = None
