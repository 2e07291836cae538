"""Authentication service coordinating the directory, sessions and handoff tokens."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional, Tuple

from fastapi import Request

from .. import config as app_config
from ..db import init_database
from . import config
from .cookies import read_session_cookie
from .crypto import token_preview
from .directory import CredentialValidator, Principal, UserDirectory
from .errors import (
    ForbiddenError,
    InvalidCredentialsError,
    TenantMismatchError,
    UnauthorizedError,
    UnauthorizedReason,
)
from .guards import LoginDomainGuard, TenantDomainGuard
from .routing import DomainRouter, RequestOrigin, ScopeKind, split_host
from .sessions import (
    InMemorySessionBackend,
    LoginSession,
    SessionBackend,
    SessionContext,
    SessionStore,
    TenantSession,
)
from .tokens import TokenStore

LOGGER = logging.getLogger(__name__)


class AuthService:
    """Central authority for login, logout and tenant handoffs."""

    def __init__(
        self,
        *,
        settings: config.BridgeSettings,
        directory: CredentialValidator,
        session_backend: Optional[SessionBackend] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings
        self.directory = directory
        self._clock = clock or self._now
        self.router = DomainRouter(settings)
        self.tokens = TokenStore(
            ttl=settings.handoff_token_ttl,
            host_matcher=self.router.matcher,
            clock=self._clock,
        )
        self.sessions = SessionStore(
            session_backend or InMemorySessionBackend(),
            max_age=settings.session_max_age,
            clock=self._clock,
        )
        self.login_guard = LoginDomainGuard(self.router)
        self.tenant_guard = TenantDomainGuard(
            self.router,
            self.sessions,
            idle_timeout=settings.tenant_idle_timeout,
            clock=self._clock,
        )

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._clock()

    # -- housekeeping -------------------------------------------------

    def start_housekeeping(self) -> None:
        self.tokens.start_sweeper(self.settings.token_sweep_interval)
        self.sessions.start_pruner(self.settings.token_sweep_interval)

    def stop_housekeeping(self) -> None:
        self.tokens.stop_sweeper()
        self.sessions.stop_pruner()

    # -- request context ----------------------------------------------

    def context_from_request(self, request: Request, *, route_tenant: Optional[str] = None) -> SessionContext:
        hostname, port = split_host(request.headers.get("host"))
        origin = RequestOrigin(scheme=request.url.scheme or "http", hostname=hostname, port=port)
        return self.build_context(origin, request.cookies, route_tenant=route_tenant)

    def build_context(
        self,
        origin: RequestOrigin,
        cookies: Mapping[str, str],
        *,
        route_tenant: Optional[str] = None,
    ) -> SessionContext:
        """Attach the session of the scope selected by the request host."""
        scope = self.router.resolve(origin.hostname)
        context = SessionContext(origin=origin, scope=scope, route_tenant=route_tenant)
        if scope is None:
            LOGGER.debug("No session scope for host %s", origin.hostname)
            return context
        session_id = read_session_cookie(cookies, scope, self.settings)
        if session_id is None:
            return context
        record = self.sessions.load(scope, session_id)
        if record is None:
            return context
        return context.with_session(session_id, record)

    # -- login domain -------------------------------------------------

    def login(self, context: SessionContext, *, email: str, secret: str) -> Tuple[Principal, SessionContext]:
        scope = context.scope
        if scope is None or scope.kind != ScopeKind.LOGIN:
            LOGGER.warning("Login attempted outside the login domain (host: %s)", context.hostname)
            raise UnauthorizedError(UnauthorizedReason.INVALID_HOST, "Unauthorized - Invalid host")

        LOGGER.debug("Validating user: %s", email)
        record = self.directory.find_by_email(email)
        if record is None or not self.directory.verify_secret(record, secret):
            LOGGER.warning("Login failed for: %s", email)
            raise InvalidCredentialsError()

        principal = record.principal
        session = LoginSession(
            principal_id=principal.id,
            email=principal.email,
            name=principal.name,
            tenants=principal.tenants,
            last_activity=self._clock(),
        )
        # A fresh id on every login; the pre-login id is never promoted.
        session_id = self.sessions.new_session_id()
        with self.sessions.locked(scope, session_id):
            self.sessions.save(scope, session_id, session)
        if context.session_id:
            with self.sessions.locked(scope, context.session_id):
                self.sessions.destroy(scope, context.session_id)

        LOGGER.info("Login successful for user: %s", principal.id)
        return principal, context.with_session(session_id, session)

    def logout(self, context: SessionContext) -> SessionContext:
        """Destroy the active session of whichever scope the request is on."""
        if context.scope is not None and context.session_id is not None:
            with self.sessions.locked(context.scope, context.session_id):
                self.sessions.destroy(context.scope, context.session_id)
            LOGGER.info("Logged out of %s (host: %s)", context.scope.kind.value, context.hostname)
        return context.cleared()

    def validate_session(self, context: SessionContext) -> bool:
        return context.is_bound

    def initiate_handoff(self, context: SessionContext, tenant_id: str) -> str:
        """Issue a handoff token and return the tenant verification URL."""
        session = context.session
        if not isinstance(session, LoginSession) or not context.is_bound:
            raise UnauthorizedError(UnauthorizedReason.NOT_AUTHENTICATED, "User not authenticated")

        tenant = tenant_id.strip().lower()
        if tenant not in session.tenants:
            LOGGER.warning("User %s requested tenant %s without a grant", session.principal_id, tenant)
            raise ForbiddenError(tenant)

        token = self.tokens.issue(session.principal_id, tenant)
        redirect_url = self.router.build_url(
            context.origin,
            f"{tenant}.{self.settings.base_domain}",
            f"/verify/{token}",
        )
        LOGGER.debug("Redirecting user %s to tenant %s with token %s", session.principal_id, tenant, token_preview(token))
        return redirect_url

    # -- tenant domains -----------------------------------------------

    def redeem_handoff(self, context: SessionContext, token: str) -> Tuple[TenantSession, SessionContext]:
        """Consume a handoff token and open a tenant session on this host."""
        LOGGER.debug("Verifying one-time token %s on %s", token_preview(token), context.hostname)
        scope = context.scope
        if scope is None or scope.kind != ScopeKind.TENANT:
            # The token stays unspent on hosts that cannot hold a tenant session.
            LOGGER.error("Token presented on a host without a tenant scope: %s", context.hostname)
            raise TenantMismatchError("Invalid tenant")

        principal_id, tenant_id = self.tokens.redeem(token, context.hostname)

        # Membership is checked again here, not only when the token was issued.
        record = self.directory.find_by_id(principal_id, tenant_id)
        if record is None:
            LOGGER.warning("User %s no longer has access to tenant %s", principal_id, tenant_id)
            raise ForbiddenError(tenant_id)

        session = TenantSession(
            principal_id=principal_id,
            tenant_id=tenant_id,
            email=record.principal.email,
            last_activity=self._clock(),
        )
        session_id = self.sessions.new_session_id()
        with self.sessions.locked(scope, session_id):
            self.sessions.save(scope, session_id, session)
        if context.session_id:
            with self.sessions.locked(scope, context.session_id):
                self.sessions.destroy(scope, context.session_id)

        LOGGER.info("Tenant session opened for user %s on %s", principal_id, tenant_id)
        return session, context.with_session(session_id, session)

    @classmethod
    def from_env(cls) -> "AuthService":
        init_database()
        directory = UserDirectory()
        if app_config.SEED_DEMO_USER:
            directory.seed_demo_user()
        return cls(settings=config.BridgeSettings.from_env(), directory=directory)


_AUTH_SERVICE: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    global _AUTH_SERVICE
    if _AUTH_SERVICE is None:
        _AUTH_SERVICE = AuthService.from_env()
    return _AUTH_SERVICE
