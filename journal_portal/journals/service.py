"""Journal submission, review, bookmarking and commenting service."""

from __future__ import annotations

import logging
import time

from journal_portal.api.errors import ApiError, ApiErrorCode, field_error
from journal_portal.auth.models import AuthenticatedIdentity, Role
from journal_portal.auth.repository import CredentialRepository
from journal_portal.journals import lifecycle
from journal_portal.journals.models import (
    CommentCreateRequest,
    Journal,
    JournalComment,
    JournalCreateRequest,
    JournalStats,
    JournalUpdateRequest,
    ReviewRequest,
    ReviewStatus,
)
from journal_portal.journals.repository import JournalRepository
from journal_portal.notifications import Notifier

LOGGER = logging.getLogger(__name__)

REVIEW_SUBJECTS = {
    ReviewStatus.PUBLISHED: "Your journal has been published",
    ReviewStatus.REJECTED: "Your journal has been rejected",
    ReviewStatus.REVISIONS_NEEDED: "Your journal needs revisions",
}

# Window for "recent" counters on the admin dashboard.
RECENT_WINDOW_SECONDS = 30 * 24 * 60 * 60


def _not_found() -> ApiError:
    return ApiError(
        status_code=404,
        error_code=ApiErrorCode.JOURNAL_NOT_FOUND,
        message="Journal not found",
    )


class JournalService:
    """Journal operations; every decision goes through ``lifecycle``."""

    def __init__(
        self,
        *,
        repo: JournalRepository,
        identities: CredentialRepository,
        notifier: Notifier,
    ) -> None:
        self._repo = repo
        self._identities = identities
        self._notifier = notifier

    def _load(self, journal_id: int) -> Journal:
        journal = self._repo.get(journal_id)
        if journal is None:
            raise _not_found()
        return journal

    def create(self, actor: AuthenticatedIdentity, req: JournalCreateRequest) -> Journal:
        """Store a new DRAFT and, unless asked not to, submit it right away."""
        now = int(time.time())
        journal = self._repo.create(
            Journal(
                author_id=actor.id,
                title=req.title.strip(),
                abstract=req.abstract,
                content=req.content,
                pdf_url=req.pdf_url,
                doi=req.doi,
                page_count=req.page_count,
                created_at=now,
                updated_at=now,
            )
        )
        if req.submit_for_review:
            journal = self._repo.update(lifecycle.submit_for_review(journal, actor, now))
        LOGGER.info(
            "journal_created",
            extra={
                "user_id": actor.id,
                "journal_id": journal.id,
                "review_status": str(journal.review_status),
            },
        )
        return journal

    def get_for_viewer(
        self,
        journal_id: int,
        actor: AuthenticatedIdentity | None,
    ) -> tuple[Journal, bool]:
        """Return the journal and the viewer's saved flag; counts non-owner views."""
        journal = self._load(journal_id)
        if not lifecycle.can_view(journal, actor):
            raise ApiError(
                status_code=403,
                error_code=ApiErrorCode.AUTH_FORBIDDEN,
                message="Not authorized to view this journal",
            )
        if actor is None or actor.id != journal.author_id:
            journal = journal.model_copy(
                update={"view_count": self._repo.increment_view_count(journal.id)}
            )
        saved = actor is not None and self._repo.is_saved(actor.id, journal.id)
        return journal, saved

    def list_visible(
        self,
        actor: AuthenticatedIdentity | None,
        *,
        limit: int = 50,
    ) -> list[tuple[Journal, bool]]:
        return self._repo.list_visible(actor, limit=limit)

    def list_mine(self, actor: AuthenticatedIdentity, status: str | None = None) -> list[Journal]:
        review_status = None
        if status:
            try:
                review_status = ReviewStatus(status)
            except ValueError as exc:
                raise ApiError(
                    status_code=400,
                    error_code=ApiErrorCode.VALIDATION_ERROR,
                    message="Invalid status filter",
                    errors=[field_error("status", "Invalid review status")],
                ) from exc
        return self._repo.list_by_author(actor.id, status=review_status)

    def list_pending(self, *, limit: int = 100) -> list[Journal]:
        return self._repo.list_pending(limit=limit)

    def list_saved(self, actor: AuthenticatedIdentity) -> list[Journal]:
        return self._repo.list_saved(actor.id)

    def update(
        self,
        journal_id: int,
        actor: AuthenticatedIdentity,
        req: JournalUpdateRequest,
    ) -> Journal:
        journal = self._load(journal_id)
        changes = req.model_dump(exclude_none=True)
        updated = lifecycle.edit(journal, actor, changes, int(time.time()))
        return self._repo.update(updated)

    def delete(self, journal_id: int, actor: AuthenticatedIdentity) -> None:
        journal = self._load(journal_id)
        if not lifecycle.can_delete(journal, actor):
            raise ApiError(
                status_code=403,
                error_code=ApiErrorCode.AUTH_FORBIDDEN,
                message="Not authorized to delete this journal",
            )
        self._repo.delete(journal.id)
        LOGGER.info("journal_deleted", extra={"user_id": actor.id, "journal_id": journal.id})

    def submit(self, journal_id: int, actor: AuthenticatedIdentity) -> Journal:
        journal = self._load(journal_id)
        return self._repo.update(
            lifecycle.submit_for_review(journal, actor, int(time.time()))
        )

    def resubmit(self, journal_id: int, actor: AuthenticatedIdentity) -> Journal:
        journal = self._load(journal_id)
        return self._repo.update(lifecycle.resubmit(journal, actor, int(time.time())))

    def review(
        self,
        journal_id: int,
        actor: AuthenticatedIdentity,
        req: ReviewRequest,
    ) -> Journal:
        """Apply an admin decision and tell the author about it."""
        journal = self._load(journal_id)
        reviewed = self._repo.update(
            lifecycle.apply_review(journal, actor, req, int(time.time()))
        )
        LOGGER.info(
            "journal_reviewed",
            extra={
                "user_id": actor.id,
                "journal_id": reviewed.id,
                "review_status": str(reviewed.review_status),
            },
        )
        self._notify_author(reviewed)
        return reviewed

    def _notify_author(self, journal: Journal) -> None:
        """Best effort: the review is already stored when this runs."""
        try:
            author = self._identities.get_by_id(journal.author_id)
            if author is None:
                return
            subject = REVIEW_SUBJECTS.get(
                journal.review_status, "Your journal review status has changed"
            )
            self._notifier.send(author.email, author.name, subject, str(journal.id))
        except Exception:
            LOGGER.warning(
                "review_notification_failed",
                exc_info=True,
                extra={"journal_id": journal.id, "user_id": journal.author_id},
            )

    def save(self, journal_id: int, actor: AuthenticatedIdentity) -> None:
        """Bookmark a published journal; unpublished ones look missing."""
        journal = self._repo.get(journal_id)
        if journal is None or not lifecycle.is_public(journal):
            raise _not_found()
        self._repo.save_for_user(actor.id, journal.id)

    def unsave(self, journal_id: int, actor: AuthenticatedIdentity) -> bool:
        return self._repo.unsave_for_user(actor.id, journal_id)

    def add_comment(
        self,
        journal_id: int,
        actor: AuthenticatedIdentity,
        req: CommentCreateRequest,
    ) -> JournalComment:
        journal = self._repo.get(journal_id)
        if journal is None:
            raise ApiError(
                status_code=404,
                error_code=ApiErrorCode.JOURNAL_NOT_FOUND,
                message="Journal not found or not available for commenting",
            )
        parent = self._repo.get_comment(req.parent_id) if req.parent_id is not None else None
        comment = self._repo.add_comment(
            lifecycle.add_comment(journal, actor, req, parent, int(time.time()))
        )
        LOGGER.info(
            "journal_commented",
            extra={"user_id": actor.id, "journal_id": journal.id, "comment_id": comment.id},
        )
        return comment

    def list_comments(
        self,
        journal_id: int,
        actor: AuthenticatedIdentity | None,
    ) -> list[JournalComment]:
        """Comments of a journal the viewer may see; hidden journals look missing."""
        journal = self._repo.get(journal_id)
        if journal is None or not lifecycle.can_view(journal, actor):
            raise _not_found()
        return self._repo.list_comments(journal.id)

    def stats(self) -> JournalStats:
        since = int(time.time()) - RECENT_WINDOW_SECONDS
        users_by_role = {str(role): 0 for role in Role}
        users_by_role.update(self._identities.count_by_role())
        return self._repo.journal_stats(since=since).model_copy(
            update={
                "users_by_role": users_by_role,
                "total_users": sum(users_by_role.values()),
                "new_users": self._identities.count_created_since(since),
            }
        )
