"""Authorization guard attaching verified identities to requests."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Request

from journal_portal.api.errors import ApiError, ApiErrorCode
from journal_portal.auth.models import AuthenticatedIdentity, Role
from journal_portal.auth.repository import CredentialRepository, CredentialStoreUnavailable
from journal_portal.auth.tokens import TokenIssuer, TokenTypeMismatch
from journal_portal.auth.transport import SessionTransport
from journal_portal.core.security import TokenError, TokenExpired

LOGGER = logging.getLogger(__name__)


def _unauthorized(error_code: ApiErrorCode, message: str) -> ApiError:
    return ApiError(status_code=401, error_code=error_code, message=message)


class AuthorizationGuard:
    """Request-entry authentication and role gates."""

    def __init__(
        self,
        *,
        issuer: TokenIssuer,
        transport: SessionTransport,
        repo: CredentialRepository,
    ) -> None:
        self._issuer = issuer
        self._transport = transport
        self._repo = repo

    def authenticate(self, request: Request) -> AuthenticatedIdentity:
        """Verify the request's access token and attach the identity to it."""
        token = self._transport.extract(request)
        if not token:
            raise _unauthorized(ApiErrorCode.AUTH_MISSING_TOKEN, "No token provided")

        try:
            claims = self._issuer.verify_access(token)
        except TokenExpired as exc:
            raise _unauthorized(ApiErrorCode.AUTH_TOKEN_EXPIRED, "Token expired") from exc
        except TokenTypeMismatch as exc:
            raise _unauthorized(ApiErrorCode.AUTH_TOKEN_INVALID, "Invalid token type") from exc
        except TokenError as exc:
            raise _unauthorized(ApiErrorCode.AUTH_TOKEN_INVALID, "Invalid token") from exc

        identity = self._repo.get_by_id(claims.subject_id)
        if identity is None:
            raise _unauthorized(ApiErrorCode.AUTH_TOKEN_INVALID, "User not found")

        attached = AuthenticatedIdentity(
            id=identity.id, role=identity.role, email=identity.email
        )
        request.state.identity = attached
        return attached

    def authenticate_optional(self, request: Request) -> AuthenticatedIdentity | None:
        """Same as ``authenticate`` but any failure yields an anonymous request."""
        try:
            return self.authenticate(request)
        except ApiError:
            return None
        except CredentialStoreUnavailable:
            LOGGER.warning(
                "optional_auth_store_unavailable",
                extra={"path": request.url.path},
            )
            return None

    # FastAPI dependencies

    def current_identity(self, request: Request) -> AuthenticatedIdentity:
        return self.authenticate(request)

    def optional_identity(self, request: Request) -> AuthenticatedIdentity | None:
        return self.authenticate_optional(request)

    def require_roles(self, *roles: Role) -> Callable[..., AuthenticatedIdentity]:
        """Build a dependency that authenticates, then checks the role."""
        allowed = frozenset(roles)

        def role_gate(
            identity: AuthenticatedIdentity = Depends(self.current_identity),
        ) -> AuthenticatedIdentity:
            if identity.role not in allowed:
                LOGGER.info(
                    "role_gate_denied",
                    extra={"user_id": identity.id, "role": str(identity.role)},
                )
                raise ApiError(
                    status_code=403,
                    error_code=ApiErrorCode.AUTH_FORBIDDEN,
                    message="Not authorized",
                )
            return identity

        return role_gate
