"""Cryptographic helpers for the authentication subsystem."""

from __future__ import annotations

import secrets
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from itsdangerous import BadSignature, URLSafeTimedSerializer

_PASSWORD_HASHER = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plain text password using Argon2."""

    return _PASSWORD_HASHER.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password hash."""

    try:
        return _PASSWORD_HASHER.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def generate_token(nbytes: int = 32) -> str:
    """Generate a hex token carrying ``nbytes`` of randomness (256 bits by default)."""

    return secrets.token_hex(nbytes)


def token_preview(token: str) -> str:
    """Shorten a secret token so it can be logged."""

    return f"{token[:8]}..." if len(token) > 8 else "***"


def sign_session_id(session_id: str, *, secret: str, salt: str) -> str:
    """Sign a session id for use as a cookie value."""

    return URLSafeTimedSerializer(secret, salt=salt).dumps(session_id)


def unsign_session_id(value: str, *, secret: str, salt: str, max_age_seconds: int) -> Optional[str]:
    """Return the session id inside a signed cookie, or None when it is forged or stale."""

    try:
        session_id = URLSafeTimedSerializer(secret, salt=salt).loads(value, max_age=max_age_seconds)
    except BadSignature:
        return None
    if not isinstance(session_id, str):
        return None
    return session_id
