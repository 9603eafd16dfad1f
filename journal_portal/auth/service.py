"""Authentication service for registration, login, token rotation and password flows."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

from journal_portal.api.errors import ApiError, ApiErrorCode, field_error
from journal_portal.auth.models import (
    CreateAuthorRequest,
    Identity,
    ProfileStatus,
    RegisterRequest,
    Role,
)
from journal_portal.auth.repository import (
    CredentialRepository,
    EmailAlreadyRegistered,
    normalize_email,
)
from journal_portal.auth.revocation import RevocationRegistry
from journal_portal.auth.tokens import REFRESH_TOKEN_TYPE, IssuedTokens, TokenIssuer
from journal_portal.core.config import AuthConfig
from journal_portal.core.security import (
    TokenError,
    TokenExpired,
    hash_password,
    verify_password,
)
from journal_portal.notifications import Notifier

LOGGER = logging.getLogger(__name__)

PASSWORD_RESET_SUBJECT = "Reset your journal portal password"


@dataclass(frozen=True)
class AuthResult:
    """Identity plus the token pair to hand to the session transport."""

    identity: Identity
    tokens: IssuedTokens


class RefreshRejected(Exception):
    """Refresh token cannot be rotated; ``reason`` names the failed check."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _invalid_credentials() -> ApiError:
    return ApiError(
        status_code=401,
        error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
        message="Invalid credentials",
    )


def _validate_email(email: str) -> str:
    normalized = normalize_email(email)
    local, _, domain = normalized.partition("@")
    if not local or not domain:
        raise ApiError(
            status_code=400,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message="Invalid registration data",
            errors=[field_error("email", "Email must be a valid address")],
        )
    return normalized


class AuthService:
    """Identity lifecycle: credentials, token issuance, rotation and revocation."""

    def __init__(
        self,
        *,
        repo: CredentialRepository,
        issuer: TokenIssuer,
        registry: RevocationRegistry,
        config: AuthConfig,
        notifier: Notifier,
    ) -> None:
        """Initialize service dependencies."""
        self._repo = repo
        self._issuer = issuer
        self._registry = registry
        self._config = config
        self._notifier = notifier

    def bootstrap_admin_user(self) -> None:
        """Ensure bootstrap admin identity exists from configuration."""
        if not self._config.admin_email or self._repo.get_by_email(self._config.admin_email):
            return
        self._repo.create(
            Identity(
                id=uuid.uuid4().hex,
                email=self._config.admin_email,
                password_hash=hash_password(self._config.admin_password),
                name="Administrator",
                role=Role.ADMIN,
                profile_status=ProfileStatus.COMPLETE,
                created_at=int(time.time()),
            )
        )
        LOGGER.info("bootstrap_admin_created")

    def register(self, req: RegisterRequest) -> AuthResult:
        """Create a USER identity with an incomplete profile and sign it in."""
        email = _validate_email(req.email)
        identity = Identity(
            id=uuid.uuid4().hex,
            email=email,
            password_hash=hash_password(req.password),
            name=req.name.strip(),
            role=Role.USER,
            profile_status=ProfileStatus.INCOMPLETE,
            created_at=int(time.time()),
        )
        try:
            identity = self._repo.create(identity)
        except EmailAlreadyRegistered as exc:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.AUTH_EMAIL_TAKEN,
                message="User with this email already exists",
            ) from exc
        tokens = self._issuer.issue(identity.id, identity.role)
        LOGGER.info("identity_registered", extra={"user_id": identity.id})
        return AuthResult(identity=identity, tokens=tokens)

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate credentials and issue an access/refresh pair.

        Unknown e-mail and wrong password produce the same error.
        """
        identity = self._repo.get_by_email(email)
        if identity is None or not verify_password(password, identity.password_hash):
            raise _invalid_credentials()
        tokens = self._issuer.issue(identity.id, identity.role)
        LOGGER.info("login_succeeded", extra={"user_id": identity.id})
        return AuthResult(identity=identity, tokens=tokens)

    def get_identity(self, identity_id: str) -> Identity:
        identity = self._repo.get_by_id(identity_id)
        if identity is None:
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_TOKEN_INVALID,
                message="User not found",
            )
        return identity

    def logout(self, refresh_token: str | None) -> None:
        """Revoke the presented refresh token when it can be decoded."""
        self._revoke_presented(refresh_token)

    def rotate(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new pair, consuming the old one.

        Checks run cheapest first: revocation lookup and type on the peeked
        claims, then signature and expiry, then the credential store.
        """
        try:
            peeked = self._issuer.peek_claims(refresh_token)
        except TokenError as exc:
            raise RefreshRejected("malformed") from exc

        revocation_id = str(peeked.get("jti") or "")
        if revocation_id and self._registry.is_revoked(revocation_id):
            raise RefreshRejected("revoked")
        if str(peeked.get("type") or "") != REFRESH_TOKEN_TYPE:
            raise RefreshRejected("wrong_type")

        try:
            claims = self._issuer.verify_refresh(refresh_token)
        except TokenExpired as exc:
            raise RefreshRejected("expired") from exc
        except TokenError as exc:
            raise RefreshRejected("invalid_signature") from exc

        identity = self._repo.get_by_id(claims.subject_id)
        if identity is None:
            raise RefreshRejected("unknown_subject")
        if claims.issued_at_ms < identity.credentials_changed_at:
            raise RefreshRejected("stale")

        # Only the caller that wins the insert may mint a new pair.
        if not self._registry.revoke(claims.revocation_id, expires_at=claims.expires_at):
            raise RefreshRejected("revoked")

        tokens = self._issuer.issue(identity.id, identity.role)
        LOGGER.info("refresh_rotated", extra={"user_id": identity.id})
        return AuthResult(identity=identity, tokens=tokens)

    def refresh(self, refresh_token: str | None) -> AuthResult | None:
        """Rotate when possible; ``None`` signals a silent refresh failure."""
        if not refresh_token:
            LOGGER.info("refresh_rejected", extra={"reason": "missing"})
            return None
        try:
            return self.rotate(refresh_token)
        except RefreshRejected as exc:
            LOGGER.info("refresh_rejected", extra={"reason": exc.reason})
            return None

    def reissue(self, identity: Identity, presented_refresh_token: str | None) -> IssuedTokens:
        """Revoke the presented refresh token, then issue a pair for the current role."""
        self._revoke_presented(presented_refresh_token)
        return self._issuer.issue(identity.id, identity.role)

    def change_password(
        self,
        identity_id: str,
        current_password: str,
        new_password: str,
        presented_refresh_token: str | None,
    ) -> None:
        """Replace the password and invalidate every refresh token issued before."""
        identity = self.get_identity(identity_id)
        if not verify_password(current_password, identity.password_hash):
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
                message="Current password is incorrect",
            )
        self._store_new_password(identity, new_password)
        self._revoke_presented(presented_refresh_token)
        LOGGER.info("password_changed", extra={"user_id": identity.id})

    def request_password_reset(self, email: str) -> str | None:
        """Send a reset token when the account exists; never reveal whether it does."""
        identity = self._repo.get_by_email(email)
        if identity is None:
            return None
        token = self._issuer.issue_reset_token(identity.id)
        self._notifier.send(identity.email, identity.name, PASSWORD_RESET_SUBJECT, token)
        return token

    def reset_password(self, token: str, new_password: str) -> None:
        """Consume a reset token and set the new password."""
        try:
            claims = self._issuer.verify_reset(token)
        except TokenError as exc:
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_TOKEN_INVALID,
                message="Invalid or expired token",
            ) from exc

        identity = self._repo.get_by_id(claims.subject_id)
        if identity is None or not self._registry.revoke(
            claims.revocation_id, expires_at=claims.expires_at
        ):
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_TOKEN_INVALID,
                message="Invalid or expired token",
            )
        self._store_new_password(identity, new_password)
        LOGGER.info("password_reset", extra={"user_id": identity.id})

    def create_author(self, req: CreateAuthorRequest) -> Identity:
        """Admin-only creation of an AUTHOR account."""
        email = _validate_email(req.email)
        identity = Identity(
            id=uuid.uuid4().hex,
            email=email,
            password_hash=hash_password(req.password),
            name=req.name.strip(),
            role=Role.AUTHOR,
            institution=req.institution,
            bio=req.bio,
            created_at=int(time.time()),
        )
        try:
            return self._repo.create(identity)
        except EmailAlreadyRegistered as exc:
            raise ApiError(
                status_code=409,
                error_code=ApiErrorCode.AUTH_EMAIL_TAKEN,
                message="User with this email already exists",
            ) from exc

    def _store_new_password(self, identity: Identity, new_password: str) -> None:
        self._repo.update(
            identity.model_copy(
                update={
                    "password_hash": hash_password(new_password),
                    "credentials_changed_at": time.time_ns() // 1_000_000,
                }
            )
        )

    def _revoke_presented(self, refresh_token: str | None) -> None:
        if not refresh_token:
            return
        try:
            claims = self._issuer.verify_refresh(refresh_token)
        except TokenError:
            return
        self._registry.revoke(claims.revocation_id, expires_at=claims.expires_at)
