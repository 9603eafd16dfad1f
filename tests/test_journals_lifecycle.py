from __future__ import annotations

import itertools

import pytest

from journal_portal.api.errors import ApiError
from journal_portal.auth.models import AuthenticatedIdentity, Role
from journal_portal.journals import lifecycle
from journal_portal.journals.models import (
    CommentCreateRequest,
    Journal,
    JournalComment,
    ReviewRequest,
    ReviewStatus,
)

OWNER = AuthenticatedIdentity(id="author-1", role=Role.AUTHOR, email="a1@test.local")
OTHER_AUTHOR = AuthenticatedIdentity(id="author-2", role=Role.AUTHOR, email="a2@test.local")
READER = AuthenticatedIdentity(id="user-1", role=Role.USER, email="u1@test.local")
ADMIN = AuthenticatedIdentity(id="admin-1", role=Role.ADMIN, email="admin@test.local")
NOW = 1_700_000_000


def _journal(status: ReviewStatus = ReviewStatus.DRAFT, **overrides) -> Journal:
    published = status == ReviewStatus.PUBLISHED
    return Journal(
        id=7,
        author_id=OWNER.id,
        title="On Testing",
        abstract="Abstract",
        review_status=status,
        is_published=overrides.pop("is_published", published),
        **overrides,
    )


@pytest.mark.parametrize("status", list(ReviewStatus))
def test_visibility_table(status: ReviewStatus) -> None:
    journal = _journal(status)
    public = status == ReviewStatus.PUBLISHED

    assert lifecycle.can_view(journal, None) is public
    assert lifecycle.can_view(journal, READER) is public
    assert lifecycle.can_view(journal, OTHER_AUTHOR) is public
    assert lifecycle.can_view(journal, OWNER) is True
    assert lifecycle.can_view(journal, ADMIN) is True


@pytest.mark.parametrize("status", list(ReviewStatus))
def test_edit_and_delete_table(status: ReviewStatus) -> None:
    journal = _journal(status)
    draft = status == ReviewStatus.DRAFT

    for check in (lifecycle.can_edit, lifecycle.can_delete):
        assert check(journal, OWNER) is draft
        assert check(journal, ADMIN) is True
        assert check(journal, OTHER_AUTHOR) is False
        assert check(journal, READER) is False


def test_submit_for_review_moves_draft_and_leaves_input_untouched() -> None:
    draft = _journal()

    submitted = lifecycle.submit_for_review(draft, OWNER, NOW)

    assert submitted.review_status == ReviewStatus.UNDER_REVIEW
    assert submitted.updated_at == NOW
    assert draft.review_status == ReviewStatus.DRAFT


def test_submit_for_review_by_non_owner_is_forbidden() -> None:
    with pytest.raises(ApiError) as exc:
        lifecycle.submit_for_review(_journal(), OTHER_AUTHOR, NOW)

    assert exc.value.status_code == 403


@pytest.mark.parametrize(
    "status", [s for s in ReviewStatus if s != ReviewStatus.DRAFT]
)
def test_submit_for_review_outside_draft_is_state_conflict(status: ReviewStatus) -> None:
    with pytest.raises(ApiError) as exc:
        lifecycle.submit_for_review(_journal(status), OWNER, NOW)

    assert exc.value.status_code == 400
    assert exc.value.error_code == "JOURNAL_STATE_CONFLICT"


@pytest.mark.parametrize("status", [ReviewStatus.REJECTED, ReviewStatus.REVISIONS_NEEDED])
def test_resubmit_returns_to_review(status: ReviewStatus) -> None:
    resubmitted = lifecycle.resubmit(_journal(status), OWNER, NOW)

    assert resubmitted.review_status == ReviewStatus.UNDER_REVIEW


@pytest.mark.parametrize(
    ("status", "actor", "code"),
    [
        (ReviewStatus.PUBLISHED, OWNER, 400),
        (ReviewStatus.DRAFT, OWNER, 400),
        (ReviewStatus.REJECTED, OTHER_AUTHOR, 403),
    ],
)
def test_resubmit_refusals(status: ReviewStatus, actor: AuthenticatedIdentity, code: int) -> None:
    with pytest.raises(ApiError) as exc:
        lifecycle.resubmit(_journal(status), actor, NOW)

    assert exc.value.status_code == code


def test_review_publish_sets_reviewer_dates_and_price() -> None:
    journal = _journal(ReviewStatus.UNDER_REVIEW)

    reviewed = lifecycle.apply_review(
        journal,
        ADMIN,
        ReviewRequest(review_status="PUBLISHED", review_notes="Great", price=12.5),
        NOW,
    )

    assert reviewed.review_status == ReviewStatus.PUBLISHED
    assert reviewed.is_published is True
    assert reviewed.reviewer_id == ADMIN.id
    assert reviewed.review_date == NOW
    assert reviewed.publication_date == NOW
    assert reviewed.price == 12.5
    assert reviewed.review_notes == "Great"
    assert journal.review_status == ReviewStatus.UNDER_REVIEW


def test_review_rejection_keeps_journal_private() -> None:
    reviewed = lifecycle.apply_review(
        _journal(ReviewStatus.UNDER_REVIEW),
        ADMIN,
        ReviewRequest(review_status="REVISIONS_NEEDED", review_notes="Fix refs"),
        NOW,
    )

    assert reviewed.is_published is False
    assert reviewed.publication_date is None
    assert lifecycle.can_view(reviewed, READER) is False


def test_review_by_non_admin_is_forbidden() -> None:
    with pytest.raises(ApiError) as exc:
        lifecycle.apply_review(
            _journal(ReviewStatus.UNDER_REVIEW),
            OWNER,
            ReviewRequest(review_status="PUBLISHED"),
            NOW,
        )

    assert exc.value.status_code == 403


@pytest.mark.parametrize(
    ("review", "field"),
    [
        (ReviewRequest(review_status="APPROVED"), "review_status"),
        (ReviewRequest(review_status="PUBLISHED", price=-1), "price"),
        (ReviewRequest(), "review_status"),
        (ReviewRequest(review_status=""), "review_status"),
        (ReviewRequest(review_status="PUBLISHED", price="abc"), "price"),
        (ReviewRequest(review_status="PUBLISHED", price=float("nan")), "price"),
        (ReviewRequest(review_status="PUBLISHED", price=float("inf")), "price"),
        (ReviewRequest(review_status="PUBLISHED", price=True), "price"),
        (ReviewRequest(review_status="REJECTED", is_published=True), "is_published"),
    ],
)
def test_review_validation_errors(review: ReviewRequest, field: str) -> None:
    with pytest.raises(ApiError) as exc:
        lifecycle.apply_review(_journal(ReviewStatus.UNDER_REVIEW), ADMIN, review, NOW)

    assert exc.value.status_code == 400
    assert exc.value.detail["errors"][0]["field"] == field


def test_published_flag_always_implies_published_status() -> None:
    statuses = [str(status) for status in ReviewStatus]
    for status, flag in itertools.product(statuses, [None, False, True]):
        review = ReviewRequest(review_status=status, is_published=flag)
        try:
            reviewed = lifecycle.apply_review(_journal(ReviewStatus.UNDER_REVIEW), ADMIN, review, NOW)
        except ApiError:
            continue
        if reviewed.is_published:
            assert reviewed.review_status == ReviewStatus.PUBLISHED


def test_edit_by_owner_after_submission_is_forbidden() -> None:
    with pytest.raises(ApiError) as exc:
        lifecycle.edit(_journal(ReviewStatus.UNDER_REVIEW), OWNER, {"title": "New"}, NOW)

    assert exc.value.status_code == 403
    assert lifecycle.edit(_journal(), OWNER, {"title": "New"}, NOW).title == "New"


def test_visibility_clause_shapes() -> None:
    anonymous_sql, anonymous_params = lifecycle.visibility_clause(None)
    author_sql, author_params = lifecycle.visibility_clause(OWNER, alias="j")
    admin_sql, admin_params = lifecycle.visibility_clause(ADMIN)

    assert "author_id" not in anonymous_sql and anonymous_params == []
    assert "j.author_id = ?" in author_sql and author_params == [OWNER.id]
    assert " OR " in author_sql
    assert admin_sql == "1 = 1" and admin_params == []


def test_review_accepts_numeric_string_price() -> None:
    reviewed = lifecycle.apply_review(
        _journal(ReviewStatus.UNDER_REVIEW),
        ADMIN,
        ReviewRequest(review_status="PUBLISHED", price="7.50"),
        NOW,
    )

    assert reviewed.price == 7.5


@pytest.mark.parametrize("status", list(ReviewStatus))
def test_comment_table(status: ReviewStatus) -> None:
    journal = _journal(status)
    public = status == ReviewStatus.PUBLISHED

    assert lifecycle.can_comment(journal, None) is False
    for actor in (READER, OTHER_AUTHOR, OWNER, ADMIN):
        assert lifecycle.can_comment(journal, actor) is public


def test_comment_on_published_journal() -> None:
    comment = lifecycle.add_comment(
        _journal(ReviewStatus.PUBLISHED),
        READER,
        CommentCreateRequest(content="  Nice work  "),
        None,
        NOW,
    )

    assert comment.journal_id == 7
    assert comment.user_id == READER.id
    assert comment.content == "Nice work"
    assert comment.parent_id is None
    assert comment.created_at == NOW


def test_comment_refusals() -> None:
    published = _journal(ReviewStatus.PUBLISHED)
    parent_elsewhere = JournalComment(id=3, journal_id=99, user_id=OWNER.id, content="x")

    with pytest.raises(ApiError) as blank:
        lifecycle.add_comment(published, READER, CommentCreateRequest(content="   "), None, NOW)
    with pytest.raises(ApiError) as hidden:
        lifecycle.add_comment(
            _journal(ReviewStatus.PUBLISHED, is_published=False),
            ADMIN,
            CommentCreateRequest(content="hi"),
            None,
            NOW,
        )
    with pytest.raises(ApiError) as foreign_parent:
        lifecycle.add_comment(
            published, READER, CommentCreateRequest(content="hi", parent_id=3), parent_elsewhere, NOW
        )
    with pytest.raises(ApiError) as missing_parent:
        lifecycle.add_comment(
            published, READER, CommentCreateRequest(content="hi", parent_id=4), None, NOW
        )

    assert blank.value.status_code == 400
    assert blank.value.detail["errors"][0]["field"] == "content"
    assert hidden.value.status_code == 404
    assert foreign_parent.value.status_code == 404
    assert foreign_parent.value.detail["error_code"] == "COMMENT_NOT_FOUND"
    assert missing_parent.value.detail["error_code"] == "COMMENT_NOT_FOUND"
