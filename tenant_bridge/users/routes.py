"""Profile routes for the signed-in user on either kind of domain."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth.deps import GuardedRequest, require_login_session, require_tenant_session
from ..auth.directory import Principal
from ..auth.schemas import PrincipalPublic, TenantProfile
from ..auth.service import AuthService, get_auth_service

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _load_principal(auth_service: AuthService, principal_id: str) -> Principal:
    principal = auth_service.directory.get_principal(principal_id)
    if principal is None:
        LOGGER.error("Session refers to unknown user %s", principal_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return principal


@router.get("/login/me", response_model=PrincipalPublic)
def get_me_on_login_domain(
    guarded: GuardedRequest = Depends(require_login_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> PrincipalPublic:
    LOGGER.debug("Getting user data for ID: %s on login domain", guarded.principal.principal_id)
    principal = _load_principal(auth_service, guarded.principal.principal_id)
    return PrincipalPublic(
        id=principal.id,
        email=principal.email,
        name=principal.name,
        tenants=sorted(principal.tenants),
    )


@router.get("/tenant/me", response_model=TenantProfile)
def get_me_on_tenant_domain(
    guarded: GuardedRequest = Depends(require_tenant_session),
    auth_service: AuthService = Depends(get_auth_service),
) -> TenantProfile:
    LOGGER.debug("Getting user data for ID: %s on tenant domain", guarded.principal.principal_id)
    principal = _load_principal(auth_service, guarded.principal.principal_id)
    return TenantProfile(
        id=principal.id,
        email=principal.email,
        name=principal.name,
        tenant_id=guarded.principal.tenant_id,
    )
