"""FastAPI dependencies for session-aware routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response, status

from .cookies import attach_session_cookie
from .errors import AuthError, UnauthorizedError
from .guards import AuthorizedPrincipal, LoginRedirectRequired
from .routing import ScopeKind
from .service import AuthService, get_auth_service
from .sessions import SessionContext


@dataclass(frozen=True)
class GuardedRequest:
    context: SessionContext
    principal: AuthorizedPrincipal


def http_error(error: AuthError) -> HTTPException:
    """Translate a domain error into the response the client sees."""
    if isinstance(error, UnauthorizedError):
        # The reason stays in the logs; clients only learn they are not authorized.
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return HTTPException(status_code=error.status_code, detail=error.message)


def get_session_context(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionContext:
    return auth_service.context_from_request(request)


def require_login_session(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> GuardedRequest:
    context = auth_service.context_from_request(request)
    try:
        context, principal = auth_service.login_guard.authorize(context)
    except AuthError as error:
        raise http_error(error) from error
    return GuardedRequest(context=context, principal=principal)


def require_login_session_for_tenant(
    tenant_id: str,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> GuardedRequest:
    """Login guard for tenant-login initiation routes: anonymous users are redirected."""
    context = auth_service.context_from_request(request, route_tenant=tenant_id)
    try:
        context, principal = auth_service.login_guard.authorize(context)
    except LoginRedirectRequired as redirect:
        raise HTTPException(
            status_code=status.HTTP_302_FOUND,
            detail="Login required",
            headers={"Location": redirect.location},
        ) from redirect
    except AuthError as error:
        raise http_error(error) from error
    return GuardedRequest(context=context, principal=principal)


def require_tenant_session(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> GuardedRequest:
    """Tenant guard; a refreshed tenant session also gets a freshly signed cookie."""
    context = auth_service.context_from_request(request)
    try:
        context, principal = auth_service.tenant_guard.authorize(context)
    except AuthError as error:
        raise http_error(error) from error
    if context.scope is not None and context.scope.kind == ScopeKind.TENANT:
        # The signed cookie must not expire before the record it points to.
        attach_session_cookie(response, context.scope, context.session_id, auth_service.settings)
    return GuardedRequest(context=context, principal=principal)
