"""Profile API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response

from journal_portal.api.contracts import (
    ApiErrorResponse,
    IdentityListResponse,
    IdentityResponse,
)
from journal_portal.auth.guard import AuthorizationGuard
from journal_portal.auth.models import AuthenticatedIdentity, Role
from journal_portal.auth.transport import SessionTransport
from journal_portal.profiles.models import (
    AdminUserUpdateRequest,
    CompleteProfileRequest,
    ToggleResearcherRequest,
)
from journal_portal.profiles.service import ProfileService, ProfileUpdate


def create_profiles_router(
    *,
    service: ProfileService,
    guard: AuthorizationGuard,
    transport: SessionTransport,
) -> APIRouter:
    """Build the ``/profiles`` router."""
    router = APIRouter(prefix="/profiles", tags=["profiles"])
    admin_only = guard.require_roles(Role.ADMIN)

    def _respond(update: ProfileUpdate, response: Response) -> IdentityResponse:
        if update.tokens is not None:
            transport.attach(
                response, update.tokens.access_token, update.tokens.refresh_token
            )
        return IdentityResponse(identity=update.identity.to_public())

    @router.post(
        "/complete",
        response_model=IdentityResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def complete_profile(
        req: CompleteProfileRequest,
        request: Request,
        response: Response,
        identity: AuthenticatedIdentity = Depends(guard.current_identity),
    ) -> IdentityResponse:
        update = service.complete_profile(
            identity.id, req, transport.extract_refresh(request)
        )
        return _respond(update, response)

    @router.put(
        "/toggle-researcher",
        response_model=IdentityResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def toggle_researcher(
        req: ToggleResearcherRequest,
        request: Request,
        response: Response,
        identity: AuthenticatedIdentity = Depends(guard.current_identity),
    ) -> IdentityResponse:
        """Flip USER/AUTHOR and hand back tokens carrying the new role."""
        update = service.toggle_researcher(
            identity.id, req, transport.extract_refresh(request)
        )
        return _respond(update, response)

    @router.get("/users", response_model=IdentityListResponse)
    def list_users(
        limit: int = Query(default=100, ge=1, le=500),
        _admin: AuthenticatedIdentity = Depends(admin_only),
    ) -> IdentityListResponse:
        return IdentityListResponse(
            items=[item.to_public() for item in service.list_users(limit=limit)]
        )

    @router.get(
        "/users/{user_id}",
        response_model=IdentityResponse,
        responses={404: {"model": ApiErrorResponse}},
    )
    def get_user(
        user_id: str,
        _admin: AuthenticatedIdentity = Depends(admin_only),
    ) -> IdentityResponse:
        return IdentityResponse(identity=service.get_user(user_id).to_public())

    @router.put(
        "/users/{user_id}",
        response_model=IdentityResponse,
        responses={404: {"model": ApiErrorResponse}},
    )
    def update_user(
        user_id: str,
        req: AdminUserUpdateRequest,
        _admin: AuthenticatedIdentity = Depends(admin_only),
    ) -> IdentityResponse:
        return IdentityResponse(identity=service.update_user(user_id, req).to_public())

    return router
