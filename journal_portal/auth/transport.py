"""Session transport carrying tokens over cookies and response headers."""

from __future__ import annotations

from fastapi import Request, Response

from journal_portal.core.config import AuthConfig

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
ACCESS_HEADER = "Access-Token"
REFRESH_HEADER = "Refresh-Token"
EXPOSED_TOKEN_HEADERS = (ACCESS_HEADER, REFRESH_HEADER)


def extract_bearer_token(authorization: str | None) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


class SessionTransport:
    """Write tokens to both cookies and headers; read them back in priority order.

    Browsers that drop cross-site cookies still get the header copy and can
    keep it client-side. Both channels always carry the same values.
    """

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def _cookie_kwargs(self) -> dict:
        return {
            "httponly": True,
            "secure": self._config.cookie_secure,
            "samesite": self._config.cookie_samesite,
            "path": "/",
        }

    def attach(self, response: Response, access_token: str, refresh_token: str) -> None:
        response.set_cookie(
            ACCESS_COOKIE,
            access_token,
            max_age=self._config.access_token_ttl_seconds,
            **self._cookie_kwargs(),
        )
        response.set_cookie(
            REFRESH_COOKIE,
            refresh_token,
            max_age=self._config.refresh_token_ttl_seconds,
            **self._cookie_kwargs(),
        )
        response.headers[ACCESS_HEADER] = access_token
        response.headers[REFRESH_HEADER] = refresh_token

        exposed = [
            item.strip()
            for item in response.headers.get("Access-Control-Expose-Headers", "").split(",")
            if item.strip()
        ]
        for name in EXPOSED_TOKEN_HEADERS:
            if name.lower() not in {item.lower() for item in exposed}:
                exposed.append(name)
        response.headers["Access-Control-Expose-Headers"] = ", ".join(exposed)

    def clear(self, response: Response) -> None:
        """Expire both cookies; header copies are the client's to discard."""
        for name in (ACCESS_COOKIE, REFRESH_COOKIE):
            response.set_cookie(name, "", max_age=0, expires=0, **self._cookie_kwargs())

    def extract(self, request: Request) -> str | None:
        """Access token from Authorization, then Access-Token header, then cookie."""
        token = (
            extract_bearer_token(request.headers.get("authorization"))
            or (request.headers.get(ACCESS_HEADER) or "").strip()
            or (request.cookies.get(ACCESS_COOKIE) or "").strip()
        )
        return token or None

    def extract_refresh(self, request: Request, body_token: str | None = None) -> str | None:
        """Refresh token from Refresh-Token header, then cookie, then request body."""
        token = (
            (request.headers.get(REFRESH_HEADER) or "").strip()
            or (request.cookies.get(REFRESH_COOKIE) or "").strip()
            or (body_token or "").strip()
        )
        return token or None
