"""Client-side session keeper for the portal API.

``PortalSession`` keeps an access/refresh pair captured from response headers
and recovers from an expired access token with at most one refresh per
attempt. A refresh endpoint answering 204 is a definitive failure: the session
stops trying until the next successful login or registration.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable

import requests

from journal_portal.auth.transport import ACCESS_HEADER, REFRESH_HEADER

LOGGER = logging.getLogger(__name__)


@dataclass
class TokenCache:
    """Tokens captured from ``Access-Token`` / ``Refresh-Token`` response headers."""

    access_token: str = ""
    refresh_token: str = ""

    def capture(self, response: requests.Response) -> None:
        access = (response.headers.get(ACCESS_HEADER) or "").strip()
        refresh = (response.headers.get(REFRESH_HEADER) or "").strip()
        if access:
            self.access_token = access
        if refresh:
            self.refresh_token = refresh

    def clear(self) -> None:
        self.access_token = ""
        self.refresh_token = ""

    def access_headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {
            "Authorization": f"Bearer {self.access_token}",
            ACCESS_HEADER: self.access_token,
        }

    def refresh_headers(self) -> dict[str, str]:
        return {REFRESH_HEADER: self.refresh_token} if self.refresh_token else {}


class PortalSession:
    """Authenticated HTTP session with bounded, debounced token refresh."""

    def __init__(
        self,
        base_url: str,
        *,
        http: Any = None,
        timeout_seconds: float = 10.0,
        debounce_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http if http is not None else requests.Session()
        self._timeout_seconds = timeout_seconds
        self._debounce_seconds = debounce_seconds
        self._clock = clock
        self._refresh_lock = Lock()
        self.tokens = TokenCache()
        self.identity: dict[str, Any] | None = None
        self.should_attempt_refresh = True
        self.last_failed_attempt: float | None = None

    def _send(
        self,
        method: str,
        path: str,
        *,
        with_refresh: bool = False,
        **kwargs: Any,
    ) -> requests.Response:
        headers = {**self.tokens.access_headers(), **dict(kwargs.pop("headers", None) or {})}
        if with_refresh:
            headers.update(self.tokens.refresh_headers())
        kwargs.setdefault("timeout", self._timeout_seconds)
        response = self._http.request(
            method, f"{self._base_url}{path}", headers=headers, **kwargs
        )
        self.tokens.capture(response)
        return response

    def _forget_tokens(self) -> None:
        """Drop header tokens and any auth cookies the HTTP session picked up."""
        self.tokens.clear()
        self._http.cookies.clear()

    def _succeed(self, identity: dict[str, Any]) -> dict[str, Any]:
        self.identity = identity
        self.last_failed_attempt = None
        return identity

    def _fail(self, *, definitive: bool) -> dict[str, Any] | None:
        self.last_failed_attempt = self._clock()
        if definitive:
            self.should_attempt_refresh = False
            self._forget_tokens()
            self.identity = None
        return self.identity

    def ensure_session(self) -> dict[str, Any] | None:
        """Make sure the cached identity is backed by a live access token.

        Returns the current identity, or ``None`` when signed out. Callers
        arriving while a refresh is in flight get the current state back
        immediately.
        """
        if not self.should_attempt_refresh:
            return self.identity
        if (
            self.last_failed_attempt is not None
            and self._clock() - self.last_failed_attempt < self._debounce_seconds
        ):
            return self.identity
        if not self._refresh_lock.acquire(blocking=False):
            return self.identity
        try:
            return self._fetch_identity()
        finally:
            self._refresh_lock.release()

    def _fetch_identity(self) -> dict[str, Any] | None:
        try:
            response = self._send("GET", "/auth/me")
            if response.status_code == 200:
                return self._succeed(response.json()["identity"])
            if response.status_code != 401:
                return self._fail(definitive=False)
            if not self.tokens.refresh_token:
                return self._fail(definitive=True)

            refreshed = self._send("POST", "/auth/refresh-token", with_refresh=True)
            if refreshed.status_code == 204:
                LOGGER.info("session_refresh_rejected")
                return self._fail(definitive=True)
            if refreshed.status_code != 200:
                return self._fail(definitive=False)

            response = self._send("GET", "/auth/me")
            if response.status_code == 200:
                return self._succeed(response.json()["identity"])
            return self._fail(definitive=False)
        except requests.RequestException:
            LOGGER.warning("session_refresh_failed", exc_info=True)
            return self._fail(definitive=False)

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send an authenticated request; on 401 recover the session and retry once."""
        response = self._send(method, path, **dict(kwargs))
        if response.status_code != 401:
            return response
        previous_access = self.tokens.access_token
        self.ensure_session()
        if not self.tokens.access_token or self.tokens.access_token == previous_access:
            return response
        return self._send(method, path, **dict(kwargs))

    def _start(self, response: requests.Response) -> dict[str, Any]:
        response.raise_for_status()
        self.should_attempt_refresh = True
        return self._succeed(response.json()["identity"])

    def login(self, email: str, password: str) -> dict[str, Any]:
        return self._start(
            self._send("POST", "/auth/login", json={"email": email, "password": password})
        )

    def register(self, email: str, password: str, name: str) -> dict[str, Any]:
        return self._start(
            self._send(
                "POST",
                "/auth/register",
                json={"email": email, "password": password, "name": name},
            )
        )

    def logout(self) -> None:
        """Revoke server-side and forget local state, even if the call fails."""
        try:
            self._send("POST", "/auth/logout", with_refresh=True)
        except requests.RequestException:
            LOGGER.warning("session_logout_failed", exc_info=True)
        finally:
            self._forget_tokens()
            self.identity = None
            self.should_attempt_refresh = False
            self.last_failed_attempt = None
