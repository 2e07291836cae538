"""FastAPI routes for the login domain: login, logout and tenant handoff."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from .cookies import attach_session_cookie, clear_session_cookie
from .deps import GuardedRequest, get_session_context, http_error, require_login_session_for_tenant
from .errors import AuthError, SessionPersistenceError
from .schemas import LoginRequest, LoginResponse, LogoutResponse, PrincipalPublic, ValidateSessionResponse
from .service import AuthService, get_auth_service
from .sessions import SessionContext, TenantSession

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    response: Response,
    context: SessionContext = Depends(get_session_context),
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    LOGGER.info("Login attempt for email: %s (host: %s)", payload.email, context.hostname)
    try:
        principal, context = auth_service.login(context, email=payload.email, secret=payload.secret)
    except AuthError as error:
        raise http_error(error) from error
    attach_session_cookie(response, context.scope, context.session_id, auth_service.settings)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(
        user=PrincipalPublic(
            id=principal.id,
            email=principal.email,
            name=principal.name,
            tenants=sorted(principal.tenants),
        )
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(
    response: Response,
    context: SessionContext = Depends(get_session_context),
    auth_service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    tenant_id = context.session.tenant_id if isinstance(context.session, TenantSession) else None
    LOGGER.info("Logout request for tenant: %s (host: %s)", tenant_id, context.hostname)
    try:
        auth_service.logout(context)
    except SessionPersistenceError as error:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Logout failed") from error
    if context.scope is not None:
        clear_session_cookie(response, context.scope, auth_service.settings)
    return LogoutResponse(tenant_id=tenant_id)


@router.get("/init-session/{tenant_id}")
def init_session(
    tenant_id: str,
    guarded: GuardedRequest = Depends(require_login_session_for_tenant),
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    LOGGER.info("Init session for tenant: %s", tenant_id)
    try:
        redirect_url = auth_service.initiate_handoff(guarded.context, tenant_id)
    except AuthError as error:
        LOGGER.error("Failed to initialize tenant session: %s", error.message)
        raise http_error(error) from error
    return RedirectResponse(redirect_url, status_code=status.HTTP_302_FOUND)


@router.get("/validate-session", response_model=ValidateSessionResponse)
def validate_session(
    request: Request,
    context: SessionContext = Depends(get_session_context),
    auth_service: AuthService = Depends(get_auth_service),
):
    if not auth_service.validate_session(context):
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"valid": False})
    LOGGER.debug("Validating session for user %s (host: %s)", context.session.principal_id, request.url.hostname)
    return ValidateSessionResponse(valid=True)
