from __future__ import annotations

import time
from pathlib import Path

import pytest

from journal_portal.api.errors import ApiError
from journal_portal.auth.models import AuthenticatedIdentity, Identity, Role
from journal_portal.auth.repository import CredentialStoreUnavailable
from journal_portal.journals.models import (
    CommentCreateRequest,
    JournalCreateRequest,
    ReviewRequest,
    ReviewStatus,
)
from journal_portal.journals.repository import JournalRepository
from journal_portal.journals.service import JournalService

AUTHOR = AuthenticatedIdentity(id="author-1", role=Role.AUTHOR, email="a1@test.local")
READER = AuthenticatedIdentity(id="user-1", role=Role.USER, email="u1@test.local")
ADMIN = AuthenticatedIdentity(id="admin-1", role=Role.ADMIN, email="admin@test.local")


class _Identities:
    def __init__(self, *identities: Identity) -> None:
        self._items = {item.id: item for item in identities}

    def get_by_id(self, identity_id: str) -> Identity | None:
        return self._items.get(identity_id)

    def count_by_role(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for item in self._items.values():
            counts[str(item.role)] = counts.get(str(item.role), 0) + 1
        return counts

    def count_created_since(self, since: int) -> int:
        return sum(1 for item in self._items.values() if item.created_at >= since)


class _Notifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str, str]] = []

    def send(self, recipient_email: str, recipient_name: str, subject: str, context_id: str) -> None:
        self.sent.append((recipient_email, recipient_name, subject, context_id))


def _service(tmp_path: Path, *identities: Identity) -> tuple[JournalService, _Notifier]:
    notifier = _Notifier()
    service = JournalService(
        repo=JournalRepository(tmp_path / "portal.db"),
        identities=_Identities(*identities),
        notifier=notifier,
    )
    return service, notifier


def _author_identity() -> Identity:
    return Identity(id=AUTHOR.id, email=AUTHOR.email, password_hash="x", name="Ada", role=Role.AUTHOR)


def test_create_submits_by_default(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)

    submitted = service.create(AUTHOR, JournalCreateRequest(title="  Paper  ", abstract="A"))
    draft = service.create(
        AUTHOR, JournalCreateRequest(title="Draft", abstract="A", submit_for_review=False)
    )

    assert submitted.title == "Paper"
    assert submitted.review_status == ReviewStatus.UNDER_REVIEW
    assert draft.review_status == ReviewStatus.DRAFT


@pytest.mark.parametrize(
    ("status", "subject"),
    [
        ("PUBLISHED", "Your journal has been published"),
        ("REJECTED", "Your journal has been rejected"),
        ("REVISIONS_NEEDED", "Your journal needs revisions"),
    ],
)
def test_review_notifies_author(tmp_path: Path, status: str, subject: str) -> None:
    service, notifier = _service(tmp_path, _author_identity())
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))

    reviewed = service.review(journal.id, ADMIN, ReviewRequest(review_status=status))

    assert reviewed.reviewer_id == ADMIN.id
    assert notifier.sent == [(AUTHOR.email, "Ada", subject, str(journal.id))]


def test_review_skips_notification_for_missing_author(tmp_path: Path) -> None:
    service, notifier = _service(tmp_path)
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))

    service.review(journal.id, ADMIN, ReviewRequest(review_status="PUBLISHED"))

    assert notifier.sent == []


def test_views_are_counted_for_everyone_but_the_author(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))
    service.review(journal.id, ADMIN, ReviewRequest(review_status="PUBLISHED"))

    service.get_for_viewer(journal.id, None)
    service.get_for_viewer(journal.id, READER)
    own, saved = service.get_for_viewer(journal.id, AUTHOR)

    assert own.view_count == 2
    assert saved is False


def test_hidden_journal_is_forbidden_and_unsaveable(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))

    with pytest.raises(ApiError) as forbidden:
        service.get_for_viewer(journal.id, READER)
    with pytest.raises(ApiError) as missing:
        service.save(journal.id, READER)
    with pytest.raises(ApiError) as unknown:
        service.get_for_viewer(404, ADMIN)

    assert forbidden.value.status_code == 403
    assert missing.value.status_code == 404
    assert unknown.value.status_code == 404


def test_saved_flag_follows_bookmarks(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))
    service.review(journal.id, ADMIN, ReviewRequest(review_status="PUBLISHED"))

    service.save(journal.id, READER)
    _, saved = service.get_for_viewer(journal.id, READER)
    assert saved is True
    assert [item.id for item in service.list_saved(READER)] == [journal.id]

    assert service.unsave(journal.id, READER) is True
    assert service.list_saved(READER) == []


def test_list_mine_rejects_unknown_status(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)

    with pytest.raises(ApiError) as exc:
        service.list_mine(AUTHOR, "ARCHIVED")

    assert exc.value.status_code == 400
    assert exc.value.detail["errors"][0]["field"] == "status"


def test_review_after_views_keeps_the_count(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))
    for _ in range(3):
        service.get_for_viewer(journal.id, ADMIN)

    reviewed = service.review(journal.id, ADMIN, ReviewRequest(review_status="PUBLISHED"))

    assert reviewed.view_count == 3


class _BrokenNotifier:
    def send(self, recipient_email: str, recipient_name: str, subject: str, context_id: str) -> None:
        raise RuntimeError("smtp down")


class _UnavailableIdentities:
    def get_by_id(self, identity_id: str) -> Identity | None:
        raise CredentialStoreUnavailable("mongo down")


@pytest.mark.parametrize(
    ("identities", "notifier"),
    [
        (_Identities(_author_identity()), _BrokenNotifier()),
        (_UnavailableIdentities(), _Notifier()),
    ],
)
def test_review_survives_notification_failures(
    tmp_path: Path, identities: object, notifier: object
) -> None:
    service = JournalService(
        repo=JournalRepository(tmp_path / "portal.db"),
        identities=identities,  # type: ignore[arg-type]
        notifier=notifier,  # type: ignore[arg-type]
    )
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))

    reviewed = service.review(journal.id, ADMIN, ReviewRequest(review_status="PUBLISHED"))

    assert reviewed.is_published is True
    assert service.get_for_viewer(journal.id, None)[0].review_status == ReviewStatus.PUBLISHED


def _published_journal(service: JournalService) -> int:
    journal = service.create(AUTHOR, JournalCreateRequest(title="Paper", abstract="A"))
    service.review(journal.id, ADMIN, ReviewRequest(review_status="PUBLISHED"))
    return journal.id


def test_comment_thread_on_published_journal(tmp_path: Path) -> None:
    service, _ = _service(tmp_path, _author_identity())
    journal_id = _published_journal(service)

    top = service.add_comment(journal_id, READER, CommentCreateRequest(content="Great"))
    reply = service.add_comment(
        journal_id, AUTHOR, CommentCreateRequest(content="Thanks", parent_id=top.id)
    )

    assert reply.parent_id == top.id
    assert [c.content for c in service.list_comments(journal_id, None)] == ["Great", "Thanks"]


def test_comments_need_a_public_journal_and_a_local_parent(tmp_path: Path) -> None:
    service, _ = _service(tmp_path, _author_identity())
    first = _published_journal(service)
    second = _published_journal(service)
    pending = service.create(AUTHOR, JournalCreateRequest(title="Pending", abstract="A")).id
    elsewhere = service.add_comment(second, READER, CommentCreateRequest(content="Hi"))

    with pytest.raises(ApiError) as unpublished:
        service.add_comment(pending, AUTHOR, CommentCreateRequest(content="Hi"))
    with pytest.raises(ApiError) as missing:
        service.add_comment(9999, READER, CommentCreateRequest(content="Hi"))
    with pytest.raises(ApiError) as foreign_parent:
        service.add_comment(
            first, READER, CommentCreateRequest(content="Hi", parent_id=elsewhere.id)
        )
    with pytest.raises(ApiError) as hidden_listing:
        service.list_comments(pending, READER)

    assert unpublished.value.status_code == 404
    assert missing.value.status_code == 404
    assert foreign_parent.value.error_code == "COMMENT_NOT_FOUND"
    assert hidden_listing.value.status_code == 404
    assert service.list_comments(pending, AUTHOR) == []
    assert service.list_comments(first, None) == []


def test_stats_combine_journal_and_account_counts(tmp_path: Path) -> None:
    now = int(time.time())
    reader = Identity(id=READER.id, email=READER.email, password_hash="x", created_at=now)
    admin = Identity(id=ADMIN.id, email=ADMIN.email, password_hash="x", role=Role.ADMIN)
    service, _ = _service(tmp_path, _author_identity(), reader, admin)
    journal_id = _published_journal(service)
    service.create(AUTHOR, JournalCreateRequest(title="Draft", abstract="A", submit_for_review=False))
    service.add_comment(journal_id, READER, CommentCreateRequest(content="Hi"))

    stats = service.stats()

    assert stats.total_journals == 2
    assert stats.published_journals == 1
    assert stats.status_counts["DRAFT"] == 1
    assert stats.recent_submissions == 2
    assert stats.total_comments == 1
    assert stats.users_by_role == {"USER": 1, "AUTHOR": 1, "ADMIN": 1}
    assert stats.total_users == 3
    assert stats.new_users == 1
