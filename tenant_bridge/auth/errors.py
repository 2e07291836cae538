"""Error taxonomy for session bridging and authorization.

Every error carries the HTTP status it maps to and a stable ``error_code``.
``UnauthorizedError`` additionally records *why* the request was rejected;
that reason is meant for logs only and is never echoed back to the client.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class UnauthorizedReason(str, Enum):
    NO_SESSION = "no_session"
    NOT_AUTHENTICATED = "not_authenticated"
    INVALID_HOST = "invalid_host"
    SESSION_EXPIRED = "session_expired"
    TENANT_MISMATCH = "tenant_mismatch"


class AuthError(Exception):
    """Base class for authentication failures mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "auth_error"

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidCredentialsError(AuthError):
    status_code = 401
    error_code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class UnauthorizedError(AuthError):
    """The request carries no usable session for this domain (401)."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(self, reason: UnauthorizedReason, message: Optional[str] = None) -> None:
        super().__init__(message or reason.value.replace("_", " ").capitalize())
        self.reason = reason


class TenantMismatchError(UnauthorizedError):
    """A session or handoff token was presented on another tenant's host."""

    def __init__(self, message: str = "Tenant mismatch") -> None:
        super().__init__(UnauthorizedReason.TENANT_MISMATCH, message)


class ForbiddenError(AuthError):
    """Authenticated, but the tenant is not granted to the principal (403)."""

    status_code = 403
    error_code = "forbidden"

    def __init__(self, tenant_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"User does not have access to tenant: {tenant_id}")
        self.tenant_id = tenant_id


class TokenInvalidError(AuthError):
    status_code = 401
    error_code = "token_invalid"

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class TokenExpiredError(AuthError):
    status_code = 401
    error_code = "token_expired"

    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


class SessionPersistenceError(AuthError):
    """The session backend did not acknowledge a write (500)."""

    status_code = 500
    error_code = "session_persistence_failed"

    def __init__(self, message: str = "Failed to save session") -> None:
        super().__init__(message)
