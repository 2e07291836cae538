"""Routes served on tenant domains."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from ..auth.cookies import attach_session_cookie
from ..auth.deps import GuardedRequest, require_tenant_session
from ..auth.errors import AuthError, SessionPersistenceError
from ..auth.schemas import PingResponse, TenantListResponse
from ..auth.service import AuthService, get_auth_service

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenant", tags=["tenant"])
# Handoff redirects land on /verify/<token> at the tenant host's root.
verify_router = APIRouter(tags=["tenant"])


def _redeem(token: str, request: Request, auth_service: AuthService) -> RedirectResponse:
    context = auth_service.context_from_request(request)
    try:
        _, context = auth_service.redeem_handoff(context, token)
    except SessionPersistenceError as error:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Authentication failed") from error
    except AuthError as error:
        LOGGER.error("Token verification failed: %s", error.message)
        if context.scope is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication failed") from error
        # Still mid-handoff: send the browser back to the login entry point.
        location = auth_service.router.login_entry_url(context.origin, context.scope.tenant_label)
        return RedirectResponse(location, status_code=status.HTTP_302_FOUND)

    response = RedirectResponse("/", status_code=status.HTTP_302_FOUND)
    attach_session_cookie(response, context.scope, context.session_id, auth_service.settings)
    response.headers["Cache-Control"] = "no-store"
    return response


@router.get("/verify-token/{token}")
def verify_token(
    token: str,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    return _redeem(token, request, auth_service)


@verify_router.get("/verify/{token}")
def verify(
    token: str,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    return _redeem(token, request, auth_service)


@router.get("/ping", response_model=PingResponse)
def ping(
    _: GuardedRequest = Depends(require_tenant_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> PingResponse:
    # The guard already refreshed last_activity.
    return PingResponse(timestamp=int(auth_service.now().timestamp() * 1000))


@router.get("/dashboard")
def dashboard(guarded: GuardedRequest = Depends(require_tenant_session)) -> dict[str, str]:
    return {"message": f"Welcome to {guarded.context.hostname}, user: {guarded.principal.principal_id}"}


@router.get("/list", response_model=TenantListResponse)
def list_tenants(auth_service: AuthService = Depends(get_auth_service)) -> TenantListResponse:
    return TenantListResponse(tenants=auth_service.directory.list_tenants())
