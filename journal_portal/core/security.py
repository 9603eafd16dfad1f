"""Security primitives for password hashing and token signing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any

PBKDF2_ROUNDS = 120_000


class TokenError(ValueError):
    """Base error for tokens that cannot be trusted."""


class TokenMalformed(TokenError):
    """Token is not a three-part signed structure with a JSON payload."""


class TokenSignatureInvalid(TokenError):
    """Token signature does not match the signing key."""


class TokenExpired(TokenError):
    """Token ``exp`` claim is in the past."""


def _b64url_encode(raw: bytes) -> str:
    """Return URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    """Decode URL-safe base64 string with optional missing padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def hash_password(password: str) -> str:
    """Hash password using PBKDF2-HMAC-SHA256 with random salt."""
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ROUNDS)
    return f"pbkdf2_sha256${PBKDF2_ROUNDS}${_b64url_encode(salt)}${_b64url_encode(derived)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify password against a stored PBKDF2 hash."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
    except (ValueError, TypeError):
        return False

    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(derived, expected)


def build_signed_token(payload: dict[str, Any], secret_key: str) -> str:
    """Create compact signed token using JWT-like 3-part structure."""
    if not secret_key:
        raise ValueError("Signing key is empty")
    header = {"alg": "HS256", "typ": "JWT"}
    header_part = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_part = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    signature = hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()
    signature_part = _b64url_encode(signature)
    return f"{header_part}.{payload_part}.{signature_part}"


def _split_token(token: str) -> tuple[str, str, str]:
    parts = (token or "").split(".")
    if len(parts) != 3 or not all(parts):
        raise TokenMalformed("Malformed token")
    return parts[0], parts[1], parts[2]


def _decode_payload(payload_part: str) -> dict[str, Any]:
    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise TokenMalformed("Invalid token payload") from exc
    if not isinstance(payload, dict):
        raise TokenMalformed("Invalid token payload")
    return payload


def peek_token_payload(token: str) -> dict[str, Any]:
    """Return token claims WITHOUT verifying the signature.

    Only usable for checks that can reject a token, never for ones that
    grant access.
    """
    _, payload_part, _ = _split_token(token)
    return _decode_payload(payload_part)


def decode_signed_token(
    token: str, secret_key: str, *, verify_expiry: bool = True
) -> dict[str, Any]:
    """Decode and verify compact signed token, raising ``TokenError`` on failure."""
    header_part, payload_part, signature_part = _split_token(token)

    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    expected_sig = hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()
    try:
        got_sig = _b64url_decode(signature_part)
    except ValueError as exc:
        raise TokenMalformed("Malformed token signature") from exc
    if not hmac.compare_digest(expected_sig, got_sig):
        raise TokenSignatureInvalid("Invalid token signature")

    payload = _decode_payload(payload_part)

    if verify_expiry:
        exp = int(payload.get("exp") or 0)
        if not exp or exp < int(time.time()):
            raise TokenExpired("Token expired")

    return payload
