from __future__ import annotations

from pathlib import Path

import pytest

from journal_portal.api.errors import ApiError
from journal_portal.auth.rate_limiter import LoginRateLimiter


def _limiter(tmp_path: Path, max_attempts: int = 2) -> LoginRateLimiter:
    return LoginRateLimiter(
        database_path=tmp_path / "state.db",
        max_attempts=max_attempts,
        window_seconds=300,
        lock_seconds=120,
    )


def test_login_rate_limiter_blocks_after_threshold(tmp_path: Path) -> None:
    limiter = _limiter(tmp_path)

    limiter.assert_allowed(email="test@example.com", client_ip="127.0.0.1")
    limiter.record_failure(email="test@example.com", client_ip="127.0.0.1")
    limiter.record_failure(email="Test@Example.com ", client_ip="127.0.0.1")

    with pytest.raises(ApiError) as exc:
        limiter.assert_allowed(email="test@example.com", client_ip="127.0.0.1")

    limiter.close()

    assert exc.value.status_code == 429
    assert exc.value.error_code == "AUTH_RATE_LIMITED"


def test_login_rate_limiter_is_scoped_per_client_ip(tmp_path: Path) -> None:
    limiter = _limiter(tmp_path, max_attempts=1)

    limiter.record_failure(email="test@example.com", client_ip="10.0.0.1")

    limiter.assert_allowed(email="test@example.com", client_ip="10.0.0.2")
    with pytest.raises(ApiError):
        limiter.assert_allowed(email="test@example.com", client_ip="10.0.0.1")
    limiter.close()


def test_login_rate_limiter_resets_after_success(tmp_path: Path) -> None:
    limiter = _limiter(tmp_path)

    limiter.record_failure(email="ok@example.com", client_ip="127.0.0.1")
    limiter.record_success(email="ok@example.com", client_ip="127.0.0.1")
    limiter.record_failure(email="ok@example.com", client_ip="127.0.0.1")

    limiter.assert_allowed(email="ok@example.com", client_ip="127.0.0.1")
    limiter.close()
