"""Cookie helpers: one signed cookie per session scope."""

from __future__ import annotations

from typing import Mapping, Optional

from fastapi import Response

from .config import BridgeSettings
from .crypto import sign_session_id, unsign_session_id
from .routing import ScopeKind, SessionScope


def _scope_secret(settings: BridgeSettings, scope: SessionScope) -> str:
    if scope.kind == ScopeKind.LOGIN:
        return settings.login_session_secret
    return settings.tenant_session_secret


def read_session_cookie(
    cookies: Mapping[str, str],
    scope: SessionScope,
    settings: BridgeSettings,
) -> Optional[str]:
    """Return the session id carried by this scope's cookie, if it verifies."""
    raw = cookies.get(scope.cookie_name)
    if not raw:
        return None
    return unsign_session_id(
        raw,
        secret=_scope_secret(settings, scope),
        salt=scope.cookie_name,
        max_age_seconds=int(settings.session_max_age.total_seconds()),
    )


def attach_session_cookie(
    response: Response,
    scope: SessionScope,
    session_id: str,
    settings: BridgeSettings,
) -> None:
    response.set_cookie(
        key=scope.cookie_name,
        value=sign_session_id(session_id, secret=_scope_secret(settings, scope), salt=scope.cookie_name),
        domain=scope.cookie_domain,
        path=settings.cookie_path,
        httponly=settings.cookie_httponly,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=int(settings.session_max_age.total_seconds()),
    )


def clear_session_cookie(response: Response, scope: SessionScope, settings: BridgeSettings) -> None:
    response.delete_cookie(
        key=scope.cookie_name,
        domain=scope.cookie_domain,
        path=settings.cookie_path,
    )
