"""Profile completion, researcher role toggling and admin account edits."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from journal_portal.api.errors import ApiError, ApiErrorCode, field_error
from journal_portal.auth.models import Identity, ProfileStatus, Role
from journal_portal.auth.repository import CredentialRepository
from journal_portal.auth.service import AuthService
from journal_portal.auth.tokens import IssuedTokens
from journal_portal.profiles.models import (
    AdminUserUpdateRequest,
    CompleteProfileRequest,
    ToggleResearcherRequest,
)

LOGGER = logging.getLogger(__name__)

RESEARCHER_FIELDS = ("institution", "department", "position")


@dataclass(frozen=True)
class ProfileUpdate:
    """Updated identity plus a new token pair when the role changed."""

    identity: Identity
    tokens: IssuedTokens | None = None


def _require_researcher_fields(values: dict[str, str]) -> dict[str, str]:
    cleaned = {name: (values.get(name) or "").strip() for name in RESEARCHER_FIELDS}
    missing = [name for name, value in cleaned.items() if not value]
    if missing:
        raise ApiError(
            status_code=400,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message="Researcher details are required",
            errors=[field_error(name, f"{name.capitalize()} is required") for name in missing],
        )
    return cleaned


class ProfileService:
    """Account profile operations layered on the credential store."""

    def __init__(self, *, repo: CredentialRepository, auth: AuthService) -> None:
        self._repo = repo
        self._auth = auth

    def _load(self, identity_id: str) -> Identity:
        identity = self._repo.get_by_id(identity_id)
        if identity is None:
            raise ApiError(
                status_code=404,
                error_code=ApiErrorCode.USER_NOT_FOUND,
                message="User not found",
            )
        return identity

    def _save(
        self,
        identity: Identity,
        updated: Identity,
        presented_refresh_token: str | None,
    ) -> ProfileUpdate:
        self._repo.update(updated)
        if updated.role == identity.role:
            return ProfileUpdate(identity=updated)
        # The old refresh token still carries the previous role.
        tokens = self._auth.reissue(updated, presented_refresh_token)
        LOGGER.info(
            "role_changed",
            extra={"user_id": updated.id, "role": str(updated.role)},
        )
        return ProfileUpdate(identity=updated, tokens=tokens)

    def complete_profile(
        self,
        identity_id: str,
        req: CompleteProfileRequest,
        presented_refresh_token: str | None,
    ) -> ProfileUpdate:
        """Fill in the profile; researchers are promoted to AUTHOR."""
        identity = self._load(identity_id)
        changes: dict = {
            "name": req.name.strip(),
            "bio": req.bio,
            "profile_status": ProfileStatus.COMPLETE,
        }
        if req.is_researcher:
            changes.update(_require_researcher_fields(req.model_dump()))
            if identity.role == Role.USER:
                changes["role"] = Role.AUTHOR
        return self._save(identity, identity.model_copy(update=changes), presented_refresh_token)

    def toggle_researcher(
        self,
        identity_id: str,
        req: ToggleResearcherRequest,
        presented_refresh_token: str | None,
    ) -> ProfileUpdate:
        """Switch between USER and AUTHOR; administrators cannot toggle."""
        identity = self._load(identity_id)
        if identity.role == Role.ADMIN:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message="Administrators cannot toggle researcher status",
            )
        if identity.role == Role.USER:
            changes: dict = {"role": Role.AUTHOR}
            changes.update(_require_researcher_fields(req.model_dump()))
        else:
            changes = {"role": Role.USER}
        return self._save(identity, identity.model_copy(update=changes), presented_refresh_token)

    def list_users(self, limit: int = 100) -> list[Identity]:
        return self._repo.list_identities(limit=limit)

    def get_user(self, user_id: str) -> Identity:
        return self._load(user_id)

    def update_user(self, user_id: str, req: AdminUserUpdateRequest) -> Identity:
        identity = self._load(user_id)
        changes = req.model_dump(exclude_none=True)
        updated = identity.model_copy(update=changes)
        self._repo.update(updated)
        LOGGER.info(
            "user_updated_by_admin",
            extra={"user_id": updated.id, "role": str(updated.role)},
        )
        return updated
