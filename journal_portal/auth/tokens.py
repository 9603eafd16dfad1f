"""Token issuer minting and verifying access, refresh and reset tokens."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any

from journal_portal.auth.models import Role
from journal_portal.core.config import AuthConfig
from journal_portal.core.security import (
    TokenError,
    TokenMalformed,
    build_signed_token,
    decode_signed_token,
    peek_token_payload,
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
RESET_TOKEN_TYPE = "reset"


class TokenConfigurationError(RuntimeError):
    """Signing keys are missing or shared between token kinds."""


class TokenTypeMismatch(TokenError):
    """Token carries a different ``type`` claim than the one expected."""


@dataclass(frozen=True)
class IssuedTokens:
    """Freshly minted access/refresh pair."""

    access_token: str
    refresh_token: str
    revocation_id: str
    refresh_expires_at: int


@dataclass(frozen=True)
class AccessClaims:
    subject_id: str
    role: Role
    expires_at: int


@dataclass(frozen=True)
class RefreshClaims:
    subject_id: str
    role: Role
    revocation_id: str
    issued_at: int
    issued_at_ms: int
    expires_at: int


@dataclass(frozen=True)
class ResetClaims:
    subject_id: str
    revocation_id: str
    expires_at: int


class TokenIssuer:
    """Mint and verify signed tokens.

    Access and refresh tokens are signed with distinct secrets so that one
    leaked key cannot be used to forge the other kind. Reset tokens share the
    access secret but carry their own ``type`` claim.
    """

    def __init__(self, config: AuthConfig) -> None:
        if not config.access_secret or not config.refresh_secret:
            raise TokenConfigurationError("Access and refresh secrets are required")
        if config.access_secret == config.refresh_secret:
            raise TokenConfigurationError("Access and refresh secrets must differ")
        self._config = config

    @property
    def refresh_ttl_seconds(self) -> int:
        return self._config.refresh_token_ttl_seconds

    def issue(self, subject_id: str, role: Role | str) -> IssuedTokens:
        """Mint an access/refresh pair for ``subject_id``.

        Both tokens are built before anything is returned; a signing failure
        propagates and no partial pair escapes.
        """
        now_ms = time.time_ns() // 1_000_000
        now_ts = now_ms // 1000
        role_value = str(Role(role))
        revocation_id = uuid.uuid4().hex
        refresh_exp = now_ts + self._config.refresh_token_ttl_seconds

        access_payload = {
            "iss": self._config.issuer,
            "sub": subject_id,
            "role": role_value,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now_ts,
            "exp": now_ts + self._config.access_token_ttl_seconds,
        }
        refresh_payload = {
            "iss": self._config.issuer,
            "sub": subject_id,
            "role": role_value,
            "type": REFRESH_TOKEN_TYPE,
            "jti": revocation_id,
            "iat": now_ts,
            "iat_ms": now_ms,
            "exp": refresh_exp,
        }

        access_token = build_signed_token(access_payload, self._config.access_secret)
        refresh_token = build_signed_token(refresh_payload, self._config.refresh_secret)
        return IssuedTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            revocation_id=revocation_id,
            refresh_expires_at=refresh_exp,
        )

    def issue_reset_token(self, subject_id: str) -> str:
        """Mint a single-use password reset token."""
        now_ts = int(time.time())
        payload = {
            "iss": self._config.issuer,
            "sub": subject_id,
            "type": RESET_TOKEN_TYPE,
            "jti": uuid.uuid4().hex,
            "iat": now_ts,
            "exp": now_ts + self._config.reset_token_ttl_seconds,
        }
        return build_signed_token(payload, self._config.access_secret)

    def peek_claims(self, token: str) -> dict[str, Any]:
        """Unverified claims, for cheap rejection checks only."""
        return peek_token_payload(token)

    def verify_access(self, token: str) -> AccessClaims:
        payload = self._decode(token, self._config.access_secret, ACCESS_TOKEN_TYPE)
        return AccessClaims(
            subject_id=str(payload.get("sub") or ""),
            role=self._role(payload),
            expires_at=int(payload.get("exp") or 0),
        )

    def verify_refresh(self, token: str, *, verify_expiry: bool = True) -> RefreshClaims:
        payload = self._decode(
            token,
            self._config.refresh_secret,
            REFRESH_TOKEN_TYPE,
            verify_expiry=verify_expiry,
        )
        revocation_id = str(payload.get("jti") or "")
        if not revocation_id:
            raise TokenMalformed("Refresh token has no revocation id")
        return RefreshClaims(
            subject_id=str(payload.get("sub") or ""),
            role=self._role(payload),
            revocation_id=revocation_id,
            issued_at=int(payload.get("iat") or 0),
            issued_at_ms=int(payload.get("iat_ms") or int(payload.get("iat") or 0) * 1000),
            expires_at=int(payload.get("exp") or 0),
        )

    def verify_reset(self, token: str) -> ResetClaims:
        payload = self._decode(token, self._config.access_secret, RESET_TOKEN_TYPE)
        revocation_id = str(payload.get("jti") or "")
        if not revocation_id:
            raise TokenMalformed("Reset token has no revocation id")
        return ResetClaims(
            subject_id=str(payload.get("sub") or ""),
            revocation_id=revocation_id,
            expires_at=int(payload.get("exp") or 0),
        )

    def _decode(
        self,
        token: str,
        secret: str,
        expected_type: str,
        *,
        verify_expiry: bool = True,
    ) -> dict[str, Any]:
        payload = decode_signed_token(token, secret, verify_expiry=verify_expiry)
        if str(payload.get("iss") or "") != self._config.issuer:
            raise TokenMalformed("Invalid token issuer")
        if str(payload.get("type") or "") != expected_type:
            raise TokenTypeMismatch("Invalid token type")
        return payload

    @staticmethod
    def _role(payload: dict[str, Any]) -> Role:
        try:
            return Role(str(payload.get("role") or ""))
        except ValueError as exc:
            raise TokenMalformed("Invalid role claim") from exc
