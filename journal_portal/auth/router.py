"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from journal_portal.api.contracts import (
    ApiErrorResponse,
    IdentityResponse,
    PasswordResetRequestedResponse,
    RefreshResponse,
    RegisterResponse,
    StatusResponse,
)
from journal_portal.api.errors import ApiError
from journal_portal.auth.guard import AuthorizationGuard
from journal_portal.auth.models import (
    AuthenticatedIdentity,
    ChangePasswordRequest,
    CreateAuthorRequest,
    LoginRequest,
    PasswordResetRequest,
    ProfileStatus,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    Role,
)
from journal_portal.auth.rate_limiter import LoginRateLimiter
from journal_portal.auth.service import AuthService
from journal_portal.auth.transport import SessionTransport

PASSWORD_RESET_MESSAGE = "If an account exists for this email, a reset link has been sent."


def create_auth_router(
    *,
    service: AuthService,
    guard: AuthorizationGuard,
    transport: SessionTransport,
    rate_limiter: LoginRateLimiter,
    expose_reset_token: bool = False,
) -> APIRouter:
    """Build the ``/auth`` router: sessions, refresh rotation and password flows."""
    router = APIRouter(prefix="/auth", tags=["auth"])
    admin_only = guard.require_roles(Role.ADMIN)

    @router.post(
        "/register",
        status_code=201,
        response_model=RegisterResponse,
        responses={409: {"model": ApiErrorResponse}},
    )
    def register(req: RegisterRequest, response: Response) -> RegisterResponse:
        result = service.register(req)
        transport.attach(response, result.tokens.access_token, result.tokens.refresh_token)
        return RegisterResponse(
            identity=result.identity.to_public(),
            requires_profile_completion=(
                result.identity.profile_status == ProfileStatus.INCOMPLETE
            ),
        )

    @router.post(
        "/login",
        response_model=IdentityResponse,
        responses={
            401: {"model": ApiErrorResponse},
            429: {"model": ApiErrorResponse},
            503: {"model": ApiErrorResponse},
        },
    )
    def login(req: LoginRequest, request: Request, response: Response) -> IdentityResponse:
        """Authenticate credentials and attach a fresh token pair."""
        client_ip = (request.client.host if request.client else "") or "unknown"
        rate_limiter.assert_allowed(email=req.email, client_ip=client_ip)
        try:
            result = service.login(req.email, req.password)
        except ApiError:
            rate_limiter.record_failure(email=req.email, client_ip=client_ip)
            raise
        rate_limiter.record_success(email=req.email, client_ip=client_ip)
        transport.attach(response, result.tokens.access_token, result.tokens.refresh_token)
        return IdentityResponse(identity=result.identity.to_public())

    @router.post("/logout", response_model=StatusResponse)
    def logout(
        request: Request,
        response: Response,
        req: RefreshRequest | None = None,
    ) -> StatusResponse:
        """Revoke the presented refresh token and expire both cookies."""
        service.logout(
            transport.extract_refresh(request, req.refresh_token if req else None)
        )
        transport.clear(response)
        return StatusResponse(status="ok", message="Logged out")

    @router.post(
        "/refresh-token",
        response_model=RefreshResponse,
        responses={204: {"description": "Refresh token missing or no longer valid"}},
    )
    def refresh_token(
        request: Request,
        response: Response,
        req: RefreshRequest | None = None,
    ):
        """Rotate the refresh token; failures answer 204 so clients stop retrying."""
        result = service.refresh(
            transport.extract_refresh(request, req.refresh_token if req else None)
        )
        if result is None:
            empty = Response(status_code=204)
            transport.clear(empty)
            return empty
        transport.attach(response, result.tokens.access_token, result.tokens.refresh_token)
        return RefreshResponse(subject_id=result.identity.id, role=str(result.identity.role))

    @router.get(
        "/me",
        response_model=IdentityResponse,
        responses={401: {"model": ApiErrorResponse}, 503: {"model": ApiErrorResponse}},
    )
    def me(
        identity: AuthenticatedIdentity = Depends(guard.current_identity),
    ) -> IdentityResponse:
        return IdentityResponse(identity=service.get_identity(identity.id).to_public())

    @router.post(
        "/change-password",
        response_model=StatusResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def change_password(
        req: ChangePasswordRequest,
        request: Request,
        response: Response,
        identity: AuthenticatedIdentity = Depends(guard.current_identity),
    ) -> StatusResponse:
        """Change the password; every older session has to log in again."""
        service.change_password(
            identity.id,
            req.current_password,
            req.new_password,
            transport.extract_refresh(request),
        )
        transport.clear(response)
        return StatusResponse(status="ok", message="Password changed")

    @router.post("/request-password-reset", response_model=PasswordResetRequestedResponse)
    def request_password_reset(req: PasswordResetRequest) -> PasswordResetRequestedResponse:
        token = service.request_password_reset(req.email)
        return PasswordResetRequestedResponse(
            status="ok",
            message=PASSWORD_RESET_MESSAGE,
            reset_token=token if expose_reset_token else None,
        )

    @router.post(
        "/reset-password",
        response_model=StatusResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def reset_password(req: ResetPasswordRequest) -> StatusResponse:
        service.reset_password(req.token, req.new_password)
        return StatusResponse(status="ok", message="Password has been reset")

    @router.post(
        "/create-author",
        status_code=201,
        response_model=IdentityResponse,
        responses={403: {"model": ApiErrorResponse}, 409: {"model": ApiErrorResponse}},
    )
    def create_author(
        req: CreateAuthorRequest,
        _admin: AuthenticatedIdentity = Depends(admin_only),
    ) -> IdentityResponse:
        return IdentityResponse(identity=service.create_author(req).to_public())

    return router
