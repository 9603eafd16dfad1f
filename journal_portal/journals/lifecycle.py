"""Review state machine and visibility rules for journals.

Every transition takes the current record and returns a new one; records are
never mutated in place. Permission failures raise ``ApiError`` with 403,
state and input failures raise it with 400.
"""

from __future__ import annotations

import math
from typing import Any

from journal_portal.api.errors import ApiError, ApiErrorCode, field_error
from journal_portal.auth.models import AuthenticatedIdentity, Role
from journal_portal.journals.models import (
    CommentCreateRequest,
    Journal,
    JournalComment,
    ReviewRequest,
    ReviewStatus,
)

RESUBMITTABLE_STATES = frozenset({ReviewStatus.REVISIONS_NEEDED, ReviewStatus.REJECTED})


def _forbidden(message: str) -> ApiError:
    return ApiError(status_code=403, error_code=ApiErrorCode.AUTH_FORBIDDEN, message=message)


def _state_conflict(message: str) -> ApiError:
    return ApiError(
        status_code=400,
        error_code=ApiErrorCode.JOURNAL_STATE_CONFLICT,
        message=message,
    )


def _parse_price(value: Any) -> float | None:
    """Finite, non-negative price from a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def _is_owner(journal: Journal, actor: AuthenticatedIdentity | None) -> bool:
    return actor is not None and actor.id == journal.author_id


def _is_admin(actor: AuthenticatedIdentity | None) -> bool:
    return actor is not None and actor.role == Role.ADMIN


def is_public(journal: Journal) -> bool:
    return journal.is_published and journal.review_status == ReviewStatus.PUBLISHED


def can_view(journal: Journal, actor: AuthenticatedIdentity | None) -> bool:
    """Published journals are public; anything else only to its author or an admin."""
    return is_public(journal) or _is_owner(journal, actor) or _is_admin(actor)


def can_edit(journal: Journal, actor: AuthenticatedIdentity) -> bool:
    """Admins always; the author only until the journal leaves DRAFT."""
    if _is_admin(actor):
        return True
    return _is_owner(journal, actor) and journal.review_status == ReviewStatus.DRAFT


def can_delete(journal: Journal, actor: AuthenticatedIdentity) -> bool:
    return can_edit(journal, actor)


def can_comment(journal: Journal, actor: AuthenticatedIdentity | None) -> bool:
    """Any signed-in account may comment, but only on public journals."""
    return actor is not None and is_public(journal)


def visibility_clause(
    actor: AuthenticatedIdentity | None,
    *,
    alias: str = "",
) -> tuple[str, list[Any]]:
    """SQL WHERE fragment and parameters matching ``can_view`` for listings."""
    prefix = f"{alias}." if alias else ""
    published = (
        f"({prefix}is_published = 1 AND {prefix}review_status = '{ReviewStatus.PUBLISHED}')"
    )
    if actor is None:
        return published, []
    if actor.role == Role.ADMIN:
        return "1 = 1", []
    return f"({published} OR {prefix}author_id = ?)", [actor.id]


def edit(
    journal: Journal,
    actor: AuthenticatedIdentity,
    changes: dict[str, Any],
    now: int,
) -> Journal:
    """Apply content changes; review fields are not editable here."""
    if not can_edit(journal, actor):
        raise _forbidden("Not authorized to edit this journal")
    return journal.model_copy(update={**changes, "updated_at": now})


def submit_for_review(journal: Journal, actor: AuthenticatedIdentity, now: int) -> Journal:
    if not _is_owner(journal, actor):
        raise _forbidden("Only the author can submit this journal")
    if journal.review_status != ReviewStatus.DRAFT:
        raise _state_conflict("Only draft journals can be submitted for review")
    return journal.model_copy(
        update={"review_status": ReviewStatus.UNDER_REVIEW, "updated_at": now}
    )


def resubmit(journal: Journal, actor: AuthenticatedIdentity, now: int) -> Journal:
    """Send a rejected or revision-requested journal back to review."""
    if not _is_owner(journal, actor):
        raise _forbidden("Only the author can resubmit this journal")
    if journal.review_status not in RESUBMITTABLE_STATES:
        raise _state_conflict(
            "Only rejected journals or journals needing revisions can be resubmitted"
        )
    return journal.model_copy(
        update={
            "review_status": ReviewStatus.UNDER_REVIEW,
            "is_published": False,
            "updated_at": now,
        }
    )


def apply_review(
    journal: Journal,
    actor: AuthenticatedIdentity,
    review: ReviewRequest,
    now: int,
) -> Journal:
    """Record an admin review decision.

    ``is_published`` follows the status: PUBLISHED forces it on, and an
    explicit ``True`` alongside any other status is refused.
    """
    if not _is_admin(actor):
        raise _forbidden("Only administrators can review journals")

    errors: list[dict[str, str]] = []
    status: ReviewStatus | None = None
    if review.review_status in (None, ""):
        errors.append(field_error("review_status", "Review status is required"))
    else:
        try:
            status = ReviewStatus(str(review.review_status))
        except ValueError:
            errors.append(field_error("review_status", "Invalid review status"))
    price = _parse_price(review.price)
    if review.price is not None and price is None:
        errors.append(field_error("price", "Price must be a non-negative number"))
    if status is not None and status != ReviewStatus.PUBLISHED and review.is_published:
        errors.append(
            field_error("is_published", "Only published journals can be marked as published")
        )
    if errors or status is None:
        raise ApiError(
            status_code=400,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message="Invalid review",
            errors=errors,
        )

    published = status == ReviewStatus.PUBLISHED
    changes: dict[str, Any] = {
        "review_status": status,
        "review_notes": review.review_notes,
        "reviewer_id": actor.id,
        "review_date": now,
        "is_published": published,
        "publication_date": now if published else None,
        "updated_at": now,
    }
    if price is not None:
        changes["price"] = price
    return journal.model_copy(update=changes)


def add_comment(
    journal: Journal,
    actor: AuthenticatedIdentity,
    req: CommentCreateRequest,
    parent: JournalComment | None,
    now: int,
) -> JournalComment:
    """Build a comment; a reply's parent must belong to the same journal."""
    content = (req.content or "").strip()
    if not content:
        raise ApiError(
            status_code=400,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message="Comment content is required",
            errors=[field_error("content", "Comment content is required")],
        )
    if not can_comment(journal, actor):
        raise ApiError(
            status_code=404,
            error_code=ApiErrorCode.JOURNAL_NOT_FOUND,
            message="Journal not found or not available for commenting",
        )
    if req.parent_id is not None and (parent is None or parent.journal_id != journal.id):
        raise ApiError(
            status_code=404,
            error_code=ApiErrorCode.COMMENT_NOT_FOUND,
            message="Parent comment not found",
        )
    return JournalComment(
        journal_id=journal.id,
        user_id=actor.id,
        parent_id=req.parent_id,
        content=content,
        created_at=now,
    )
