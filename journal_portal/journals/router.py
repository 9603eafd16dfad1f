"""Journal API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from journal_portal.api.contracts import (
    ApiErrorResponse,
    CommentListResponse,
    CommentResponse,
    DeleteJournalResponse,
    JournalListResponse,
    JournalResponse,
    JournalStatsResponse,
    SavedJournalResponse,
)
from journal_portal.auth.guard import AuthorizationGuard
from journal_portal.auth.models import AuthenticatedIdentity, Role
from journal_portal.journals.models import (
    CommentCreateRequest,
    JournalCreateRequest,
    JournalUpdateRequest,
    ReviewRequest,
)
from journal_portal.journals.service import JournalService

_NOT_FOUND = {404: {"model": ApiErrorResponse}}
_FORBIDDEN = {403: {"model": ApiErrorResponse}}


class JournalsRouter:
    """Routes for browsing, submitting, reviewing and saving journals."""

    def __init__(self, *, service: JournalService, guard: AuthorizationGuard) -> None:
        self._service = service
        self._guard = guard

    def build(self) -> APIRouter:
        service = self._service
        guard = self._guard
        router = APIRouter(prefix="/journals", tags=["journals"])
        authors = guard.require_roles(Role.AUTHOR, Role.ADMIN)
        author_only = guard.require_roles(Role.AUTHOR)
        admin_only = guard.require_roles(Role.ADMIN)

        @router.get("", response_model=JournalListResponse)
        def list_journals(
            limit: int = Query(default=50, ge=1, le=200),
            identity: AuthenticatedIdentity | None = Depends(guard.optional_identity),
        ) -> JournalListResponse:
            """Journals visible to the requester, with per-item saved flags."""
            items = service.list_visible(identity, limit=limit)
            return JournalListResponse(
                items=[journal.to_public(saved=saved) for journal, saved in items]
            )

        @router.get("/mine", response_model=JournalListResponse)
        def list_mine(
            status: str | None = Query(default=None),
            identity: AuthenticatedIdentity = Depends(authors),
        ) -> JournalListResponse:
            return JournalListResponse(
                items=[item.to_public() for item in service.list_mine(identity, status)]
            )

        @router.get("/pending-reviews", response_model=JournalListResponse)
        def list_pending(
            limit: int = Query(default=100, ge=1, le=500),
            _admin: AuthenticatedIdentity = Depends(admin_only),
        ) -> JournalListResponse:
            return JournalListResponse(
                items=[item.to_public() for item in service.list_pending(limit=limit)]
            )

        @router.get("/saved", response_model=JournalListResponse)
        def list_saved(
            identity: AuthenticatedIdentity = Depends(guard.current_identity),
        ) -> JournalListResponse:
            return JournalListResponse(
                items=[item.to_public(saved=True) for item in service.list_saved(identity)]
            )

        @router.get("/stats", response_model=JournalStatsResponse, responses=_FORBIDDEN)
        def journal_stats(
            _admin: AuthenticatedIdentity = Depends(admin_only),
        ) -> JournalStatsResponse:
            """Counters for the admin dashboard."""
            return JournalStatsResponse(stats=service.stats())

        @router.post("", status_code=201, response_model=JournalResponse, responses=_FORBIDDEN)
        def create_journal(
            req: JournalCreateRequest,
            identity: AuthenticatedIdentity = Depends(author_only),
        ) -> JournalResponse:
            return JournalResponse(journal=service.create(identity, req).to_public())

        @router.get(
            "/{journal_id}",
            response_model=JournalResponse,
            responses={**_NOT_FOUND, **_FORBIDDEN},
        )
        def get_journal(
            journal_id: int,
            identity: AuthenticatedIdentity | None = Depends(guard.optional_identity),
        ) -> JournalResponse:
            journal, saved = service.get_for_viewer(journal_id, identity)
            return JournalResponse(journal=journal.to_public(saved=saved))

        @router.put(
            "/{journal_id}",
            response_model=JournalResponse,
            responses={**_NOT_FOUND, **_FORBIDDEN},
        )
        def update_journal(
            journal_id: int,
            req: JournalUpdateRequest,
            identity: AuthenticatedIdentity = Depends(guard.current_identity),
        ) -> JournalResponse:
            return JournalResponse(
                journal=service.update(journal_id, identity, req).to_public()
            )

        @router.delete(
            "/{journal_id}",
            response_model=DeleteJournalResponse,
            responses={**_NOT_FOUND, **_FORBIDDEN},
        )
        def delete_journal(
            journal_id: int,
            identity: AuthenticatedIdentity = Depends(guard.current_identity),
        ) -> DeleteJournalResponse:
            service.delete(journal_id, identity)
            return DeleteJournalResponse(journal_id=journal_id, deleted=True)

        @router.post(
            "/{journal_id}/submit",
            response_model=JournalResponse,
            responses={400: {"model": ApiErrorResponse}, **_FORBIDDEN},
        )
        def submit_journal(
            journal_id: int,
            identity: AuthenticatedIdentity = Depends(author_only),
        ) -> JournalResponse:
            return JournalResponse(journal=service.submit(journal_id, identity).to_public())

        @router.post(
            "/{journal_id}/resubmit",
            response_model=JournalResponse,
            responses={400: {"model": ApiErrorResponse}, **_FORBIDDEN},
        )
        def resubmit_journal(
            journal_id: int,
            identity: AuthenticatedIdentity = Depends(author_only),
        ) -> JournalResponse:
            return JournalResponse(journal=service.resubmit(journal_id, identity).to_public())

        @router.post(
            "/{journal_id}/review",
            response_model=JournalResponse,
            responses={400: {"model": ApiErrorResponse}, **_NOT_FOUND},
        )
        def review_journal(
            journal_id: int,
            req: ReviewRequest,
            identity: AuthenticatedIdentity = Depends(admin_only),
        ) -> JournalResponse:
            """Record a review decision; the author is notified."""
            return JournalResponse(
                journal=service.review(journal_id, identity, req).to_public()
            )

        @router.post(
            "/{journal_id}/save",
            response_model=SavedJournalResponse,
            responses=_NOT_FOUND,
        )
        def save_journal(
            journal_id: int,
            identity: AuthenticatedIdentity = Depends(guard.current_identity),
        ) -> SavedJournalResponse:
            service.save(journal_id, identity)
            return SavedJournalResponse(journal_id=journal_id, saved=True)

        @router.delete("/{journal_id}/save", response_model=SavedJournalResponse)
        def unsave_journal(
            journal_id: int,
            identity: AuthenticatedIdentity = Depends(guard.current_identity),
        ) -> SavedJournalResponse:
            service.unsave(journal_id, identity)
            return SavedJournalResponse(journal_id=journal_id, saved=False)

        @router.get(
            "/{journal_id}/comments",
            response_model=CommentListResponse,
            responses=_NOT_FOUND,
        )
        def list_comments(
            journal_id: int,
            identity: AuthenticatedIdentity | None = Depends(guard.optional_identity),
        ) -> CommentListResponse:
            return CommentListResponse(items=service.list_comments(journal_id, identity))

        @router.post(
            "/{journal_id}/comments",
            status_code=201,
            response_model=CommentResponse,
            responses={400: {"model": ApiErrorResponse}, **_NOT_FOUND},
        )
        def add_comment(
            journal_id: int,
            req: CommentCreateRequest,
            identity: AuthenticatedIdentity = Depends(guard.current_identity),
        ) -> CommentResponse:
            """Comment on a published journal, or reply with ``parent_id``."""
            return CommentResponse(comment=service.add_comment(journal_id, identity, req))

        return router


def create_journals_router(
    service: JournalService, guard: AuthorizationGuard
) -> APIRouter:
    """Build the ``/journals`` router."""
    return JournalsRouter(service=service, guard=guard).build()
