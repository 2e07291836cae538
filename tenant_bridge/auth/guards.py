"""Access guards for the login domain and the tenant domains.

Both guards take a :class:`SessionContext` built by the domain router and
either return an updated context or raise. Neither creates sessions; the
tenant guard only refreshes ``last_activity`` or destroys an idle session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, NoReturn, Optional, Tuple

from .errors import TenantMismatchError, UnauthorizedError, UnauthorizedReason
from .routing import DomainRouter, ScopeKind
from .sessions import SessionContext, SessionStore, TenantSession

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizedPrincipal:
    """Principal exposed to route handlers once a guard lets a request through."""

    principal_id: str
    tenant_id: Optional[str] = None


class LoginRedirectRequired(Exception):
    """Unauthenticated tenant-login initiation: send the browser to the login page."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


class LoginDomainGuard:
    """Unauthenticated -> Authenticated. No idle timeout on the login domain."""

    def __init__(self, router: DomainRouter) -> None:
        self._router = router

    def authorize(self, context: SessionContext) -> Tuple[SessionContext, AuthorizedPrincipal]:
        LOGGER.debug("LoginDomainGuard checking session for host: %s", context.hostname)
        if context.session is None:
            self._reject_or_redirect(context, UnauthorizedReason.NO_SESSION)
        if not context.is_bound:
            self._reject_or_redirect(context, UnauthorizedReason.NOT_AUTHENTICATED)

        principal_id = context.session.principal_id
        if not self._router.is_login_host(context.hostname) or context.scope.kind != ScopeKind.LOGIN:
            LOGGER.warning("Unauthorized request for login domain (host: %s)", context.hostname)
            raise UnauthorizedError(UnauthorizedReason.INVALID_HOST, "Unauthorized - Invalid host")

        LOGGER.info("Authorized request for user %s (host: %s)", principal_id, context.hostname)
        return context, AuthorizedPrincipal(principal_id)

    def _reject_or_redirect(self, context: SessionContext, reason: UnauthorizedReason) -> NoReturn:
        if context.route_tenant:
            location = self._router.login_entry_url(context.origin, context.route_tenant)
            LOGGER.debug("Redirecting to login page for tenant: %s", context.route_tenant)
            raise LoginRedirectRequired(location)
        LOGGER.warning("Login domain rejected request (%s, host: %s)", reason.value, context.hostname)
        raise UnauthorizedError(reason, "Unauthorized - Please log in")


class TenantDomainGuard:
    """Unauthenticated / IdleExpired / Authenticated, evaluated on every request."""

    def __init__(
        self,
        router: DomainRouter,
        store: SessionStore,
        *,
        idle_timeout: timedelta,
        clock: Callable[[], datetime],
    ) -> None:
        self._router = router
        self._store = store
        self._idle_timeout = idle_timeout
        self._clock = clock

    def authorize(self, context: SessionContext) -> Tuple[SessionContext, AuthorizedPrincipal]:
        hostname = context.hostname
        LOGGER.debug("TenantDomainGuard checking host: %s", hostname)
        scope, session_id = context.scope, context.session_id
        if scope is None or session_id is None:
            LOGGER.warning("No session found (host: %s)", hostname)
            raise UnauthorizedError(UnauthorizedReason.NO_SESSION, "No session found")

        with self._store.locked(scope, session_id):
            session = self._store.load(scope, session_id)
            if session is None:
                LOGGER.warning("No session found (host: %s)", hostname)
                raise UnauthorizedError(UnauthorizedReason.NO_SESSION, "No session found")
            if not session.principal_id:
                LOGGER.warning("No user in session (host: %s)", hostname)
                raise UnauthorizedError(UnauthorizedReason.NOT_AUTHENTICATED, "User not authenticated")

            now = self._clock()
            idle = now - (session.last_activity or now)
            if idle > self._idle_timeout:
                LOGGER.warning("Session expired due to inactivity (%d ms)", idle // timedelta(milliseconds=1))
                self._store.destroy(scope, session_id)
                raise UnauthorizedError(UnauthorizedReason.SESSION_EXPIRED, "Session expired due to inactivity")

            session = session.touched(now)
            self._store.save(scope, session_id, session)

        refreshed = context.with_session(session_id, session)
        if self._router.is_login_host(hostname):
            # Shared routes on the login domain: the user is known, no tenant applies.
            return refreshed, AuthorizedPrincipal(session.principal_id)

        tenant_id = session.tenant_id if isinstance(session, TenantSession) else None
        if not tenant_id:
            LOGGER.error("No tenant specified in session (host: %s)", hostname)
            raise TenantMismatchError("No tenant specified")
        if not self._router.matcher.matches(hostname, tenant_id):
            LOGGER.error("Unauthorized request for tenant: %s (host: %s)", tenant_id, hostname)
            raise TenantMismatchError()

        LOGGER.info("Authorized request for user: %s (host: %s)", session.principal_id, hostname)
        return refreshed, AuthorizedPrincipal(session.principal_id, tenant_id)
