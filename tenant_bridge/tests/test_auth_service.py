"""Tests for the login, handoff and tenant session flow of AuthService."""

from __future__ import annotations

from urllib.parse import urlsplit

import pytest

from tenant_bridge.auth.config import BridgeSettings, HostMatchMode
from tenant_bridge.auth.errors import (
    ForbiddenError,
    InvalidCredentialsError,
    SessionPersistenceError,
    TenantMismatchError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthorizedError,
    UnauthorizedReason,
)
from tenant_bridge.auth.routing import RequestOrigin
from tenant_bridge.auth.service import AuthService
from tenant_bridge.auth.sessions import InMemorySessionBackend, LoginSession, TenantSession


class RevokingDirectory:
    """Wraps a directory and drops every tenant grant after issue time."""

    def __init__(self, inner):
        self._inner = inner

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def find_by_id(self, principal_id, tenant_id):
        return None


class BrokenBackend(InMemorySessionBackend):
    def save(self, scope_name, session_id, record, expires_at):
        raise RuntimeError("store offline")


def _context(service: AuthService, host: str, port: str | None = "3000"):
    return service.build_context(RequestOrigin(scheme="http", hostname=host, port=port), {})


def _logged_in(service: AuthService):
    _, context = service.login(_context(service, "login.lvh.me"), email="john@example.com", secret="password123")
    return context


def _token_from(url: str) -> str:
    return urlsplit(url).path.rsplit("/", 1)[-1]


# -- login --------------------------------------------------------------------


def test_login_binds_a_login_session(auth_service, principal, clock):
    found, context = auth_service.login(
        _context(auth_service, "login.lvh.me"),
        email="JOHN@example.com",
        secret="password123",
    )

    assert found == principal
    assert context.is_bound
    assert isinstance(context.session, LoginSession)
    assert context.session.tenants == frozenset({"acme", "globex"})
    assert auth_service.sessions.load(context.scope, context.session_id) == context.session
    assert auth_service.validate_session(context)


def test_login_with_wrong_secret_is_rejected(auth_service, principal):
    with pytest.raises(InvalidCredentialsError):
        auth_service.login(_context(auth_service, "login.lvh.me"), email="john@example.com", secret="nope")


def test_login_with_unknown_email_is_rejected(auth_service, principal):
    with pytest.raises(InvalidCredentialsError):
        auth_service.login(_context(auth_service, "login.lvh.me"), email="jane@example.com", secret="password123")


def test_login_on_a_tenant_host_is_rejected(auth_service, principal):
    with pytest.raises(UnauthorizedError) as excinfo:
        auth_service.login(_context(auth_service, "acme.lvh.me"), email="john@example.com", secret="password123")

    assert excinfo.value.reason == UnauthorizedReason.INVALID_HOST


def test_login_replaces_the_previous_session_id(auth_service, principal):
    first = _logged_in(auth_service)

    _, second = auth_service.login(first, email="john@example.com", secret="password123")

    assert second.session_id != first.session_id
    assert auth_service.sessions.load(first.scope, first.session_id) is None


def test_login_surfaces_persistence_failures(settings, directory, clock, principal):
    service = AuthService(settings=settings, directory=directory, session_backend=BrokenBackend(), clock=clock)

    with pytest.raises(SessionPersistenceError):
        service.login(_context(service, "login.lvh.me"), email="john@example.com", secret="password123")


def test_logout_destroys_the_session(auth_service, principal):
    context = _logged_in(auth_service)

    cleared = auth_service.logout(context)

    assert not cleared.is_bound
    assert not auth_service.validate_session(cleared)
    assert auth_service.sessions.load(context.scope, context.session_id) is None


def test_logout_without_a_session_is_harmless(auth_service):
    cleared = auth_service.logout(_context(auth_service, "login.lvh.me"))

    assert cleared.session is None


# -- handoff ------------------------------------------------------------------


def test_initiate_handoff_requires_a_login_session(auth_service):
    with pytest.raises(UnauthorizedError) as excinfo:
        auth_service.initiate_handoff(_context(auth_service, "login.lvh.me"), "acme")

    assert excinfo.value.reason == UnauthorizedReason.NOT_AUTHENTICATED


def test_initiate_handoff_for_ungranted_tenant_is_forbidden(auth_service, principal):
    context = _logged_in(auth_service)

    with pytest.raises(ForbiddenError) as excinfo:
        auth_service.initiate_handoff(context, "initech")

    assert excinfo.value.status_code == 403
    assert len(auth_service.tokens) == 0


def test_initiate_handoff_builds_the_tenant_verify_url(auth_service, principal):
    context = _logged_in(auth_service)

    url = auth_service.initiate_handoff(context, "ACME")

    parts = urlsplit(url)
    assert parts.scheme == "http"
    assert parts.netloc == "acme.lvh.me:3000"
    assert parts.path.startswith("/verify/")
    assert _token_from(url) in auth_service.tokens


def test_initiate_handoff_uses_default_port_when_host_has_none(auth_service, principal):
    _, context = auth_service.login(
        _context(auth_service, "login.lvh.me", port=None),
        email="john@example.com",
        secret="password123",
    )

    assert urlsplit(auth_service.initiate_handoff(context, "acme")).netloc == "acme.lvh.me:5173"


def test_full_handoff_opens_a_tenant_session(auth_service, principal, clock):
    url = auth_service.initiate_handoff(_logged_in(auth_service), "acme")
    tenant_context = _context(auth_service, "acme.lvh.me")

    session, context = auth_service.redeem_handoff(tenant_context, _token_from(url))

    assert session == TenantSession(
        principal_id=principal.id,
        tenant_id="acme",
        email="john@example.com",
        last_activity=clock(),
    )
    assert context.scope.cookie_name == "acme_lvh_me.sid"
    assert auth_service.sessions.load(context.scope, context.session_id) == session

    _, authorized = auth_service.tenant_guard.authorize(context)
    assert authorized.tenant_id == "acme"


def test_login_session_does_not_leak_into_tenant_scope(auth_service, principal):
    login_context = _logged_in(auth_service)
    cookies = {"acme_lvh_me.sid": "forged", login_context.scope.cookie_name: "forged"}

    tenant_context = auth_service.build_context(RequestOrigin("http", "acme.lvh.me", "3000"), cookies)

    assert tenant_context.session is None


def test_token_is_single_use(auth_service, principal):
    token = _token_from(auth_service.initiate_handoff(_logged_in(auth_service), "acme"))
    auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), token)

    with pytest.raises(TokenInvalidError):
        auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), token)


def test_expired_token_is_reported_once_then_unknown(auth_service, principal, clock):
    token = _token_from(auth_service.initiate_handoff(_logged_in(auth_service), "acme"))
    clock.advance(seconds=31)

    with pytest.raises(TokenExpiredError):
        auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), token)
    with pytest.raises(TokenInvalidError):
        auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), token)


def test_token_presented_on_another_tenant_is_rejected(auth_service, principal):
    token = _token_from(auth_service.initiate_handoff(_logged_in(auth_service), "acme"))

    with pytest.raises(TenantMismatchError):
        auth_service.redeem_handoff(_context(auth_service, "globex.lvh.me"), token)

    session, _ = auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), token)
    assert session.tenant_id == "acme"


def test_revoked_membership_is_forbidden_at_redeem(settings, directory, clock, principal):
    service = AuthService(settings=settings, directory=directory, clock=clock)
    token = _token_from(service.initiate_handoff(_logged_in(service), "acme"))
    service.directory = RevokingDirectory(directory)

    with pytest.raises(ForbiddenError):
        service.redeem_handoff(_context(service, "acme.lvh.me"), token)


def test_two_sequential_handoffs_each_succeed(auth_service, principal):
    login_context = _logged_in(auth_service)

    first = _token_from(auth_service.initiate_handoff(login_context, "acme"))
    second = _token_from(auth_service.initiate_handoff(login_context, "acme"))

    _, first_context = auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), first)
    _, second_context = auth_service.redeem_handoff(first_context, second)

    assert second_context.session_id != first_context.session_id
    assert auth_service.sessions.load(first_context.scope, first_context.session_id) is None


def test_tenant_sessions_are_independent_per_host(auth_service, principal):
    login_context = _logged_in(auth_service)
    acme_token = _token_from(auth_service.initiate_handoff(login_context, "acme"))
    globex_token = _token_from(auth_service.initiate_handoff(login_context, "globex"))

    _, acme = auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), acme_token)
    _, globex = auth_service.redeem_handoff(_context(auth_service, "globex.lvh.me"), globex_token)

    auth_service.logout(acme)

    assert auth_service.sessions.load(acme.scope, acme.session_id) is None
    assert auth_service.sessions.load(globex.scope, globex.session_id) is not None
    assert auth_service.sessions.load(login_context.scope, login_context.session_id) is not None


@pytest.mark.parametrize("host", ["login.lvh.me", "acme.example.com"])
def test_token_is_not_spent_on_a_host_without_tenant_scope(auth_service, principal, host):
    token = _token_from(auth_service.initiate_handoff(_logged_in(auth_service), "acme"))

    with pytest.raises(TenantMismatchError):
        auth_service.redeem_handoff(_context(auth_service, host), token)

    assert token in auth_service.tokens
    session, _ = auth_service.redeem_handoff(_context(auth_service, "acme.lvh.me"), token)
    assert session.tenant_id == "acme"


def test_loose_matching_redeems_on_a_composite_host(directory, clock, principal):
    service = AuthService(
        settings=BridgeSettings(host_match=HostMatchMode.CONTAINS),
        directory=directory,
        clock=clock,
    )
    token = _token_from(service.initiate_handoff(_logged_in(service), "acme"))

    session, context = service.redeem_handoff(_context(service, "eu.acme.lvh.me"), token)

    assert session.tenant_id == "acme"
    assert context.scope.cookie_name == "eu_acme_lvh_me.sid"
    _, authorized = service.tenant_guard.authorize(context)
    assert authorized.tenant_id == "acme"
