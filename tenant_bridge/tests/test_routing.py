"""Tests for host-based scope selection and host/tenant matching."""

from __future__ import annotations

import pytest

from tenant_bridge.auth.config import BridgeSettings, HostMatchMode
from tenant_bridge.auth.routing import DomainRouter, HostMatcher, RequestOrigin, ScopeKind, is_tenant_label, split_host


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("login.lvh.me:3000", ("login.lvh.me", "3000")),
        ("ACME.lvh.me", ("acme.lvh.me", None)),
        ("acme.lvh.me.", ("acme.lvh.me", None)),
        ("", ("", None)),
        (None, ("", None)),
        ("[::1]:8080", ("[::1]", "8080")),
    ],
)
def test_split_host(header, expected):
    assert split_host(header) == expected


def test_login_host_gets_login_scope():
    router = DomainRouter(BridgeSettings())

    scope = router.resolve("login.lvh.me")

    assert scope.kind == ScopeKind.LOGIN
    assert scope.cookie_name == "login.sid"
    assert scope.cookie_domain == "login.lvh.me"
    assert scope.tenant_label is None


def test_each_tenant_host_gets_its_own_cookie_scope():
    router = DomainRouter(BridgeSettings())

    acme = router.resolve("acme.lvh.me")
    globex = router.resolve("globex.lvh.me")

    assert acme.kind == ScopeKind.TENANT
    assert acme.cookie_name == "acme_lvh_me.sid"
    assert acme.cookie_domain == "acme.lvh.me"
    assert acme.tenant_label == "acme"
    assert globex.cookie_name != acme.cookie_name
    assert globex.cookie_domain != acme.cookie_domain


@pytest.mark.parametrize("host", ["lvh.me", "example.com", "a.b.lvh.me", "-bad.lvh.me", "localhost"])
def test_foreign_hosts_resolve_to_no_scope(host):
    router = DomainRouter(BridgeSettings())

    assert router.resolve(host) is None


def test_custom_base_domain_and_login_subdomain():
    router = DomainRouter(BridgeSettings(base_domain="example.org", login_subdomain="auth"))

    assert router.resolve("auth.example.org").kind == ScopeKind.LOGIN
    assert router.resolve("login.example.org").kind == ScopeKind.TENANT
    assert router.resolve("acme.lvh.me") is None


def test_build_url_reuses_scheme_and_port():
    router = DomainRouter(BridgeSettings())
    origin = RequestOrigin(scheme="https", hostname="login.lvh.me", port="8443")

    assert router.build_url(origin, "acme.lvh.me", "/verify/abc") == "https://acme.lvh.me:8443/verify/abc"


def test_build_url_falls_back_to_default_port():
    router = DomainRouter(BridgeSettings(default_redirect_port="5173"))
    origin = RequestOrigin(scheme="http", hostname="login.lvh.me")

    assert router.build_url(origin, "acme.lvh.me", "/") == "http://acme.lvh.me:5173/"


def test_build_url_without_any_port():
    router = DomainRouter(BridgeSettings(default_redirect_port=""))
    origin = RequestOrigin(scheme="https", hostname="login.lvh.me")

    assert router.build_url(origin, "acme.lvh.me", "/") == "https://acme.lvh.me/"


def test_login_entry_url_carries_tenant_hint():
    router = DomainRouter(BridgeSettings())
    origin = RequestOrigin(scheme="http", hostname="acme.lvh.me", port="3000")

    assert router.login_entry_url(origin, "acme") == "http://login.lvh.me:3000/login?tenantId=acme"
    assert router.login_entry_url(origin) == "http://login.lvh.me:3000/login"


def test_exact_matcher_requires_full_tenant_host():
    matcher = HostMatcher(base_domain="lvh.me")

    assert matcher.matches("acme.lvh.me", "acme")
    assert not matcher.matches("tenanta.lvh.me", "a")
    assert not matcher.matches("acme.evil.com", "acme")
    assert not matcher.matches("acme.lvh.me", "")
    assert not matcher.matches("acme.lvh.me", None)


def test_contains_matcher_checks_the_subdomain_component():
    matcher = HostMatcher(base_domain="lvh.me", mode=HostMatchMode.CONTAINS)

    assert matcher.matches("tenanta.lvh.me", "a")
    assert matcher.matches("acme.lvh.me", "acme")
    assert not matcher.matches("globex.lvh.me", "acme")
    assert not matcher.matches("globex.lvh.me", "lvh")


def test_loose_matching_serves_composite_tenant_hosts():
    router = DomainRouter(BridgeSettings(host_match=HostMatchMode.CONTAINS))

    scope = router.resolve("eu.acme.lvh.me")

    assert scope.kind == ScopeKind.TENANT
    assert scope.cookie_name == "eu_acme_lvh_me.sid"
    assert scope.tenant_label == "eu.acme"
    assert router.matcher.matches("eu.acme.lvh.me", "acme")
    assert router.resolve("eu..lvh.me") is None


def test_exact_matching_has_no_composite_tenant_hosts():
    assert DomainRouter(BridgeSettings()).resolve("eu.acme.lvh.me") is None


@pytest.mark.parametrize(("value", "valid"), [("acme", True), ("acme-eu", True), ("my_co", False), ("-x", False), ("", False)])
def test_is_tenant_label(value, valid):
    assert is_tenant_label(value) is valid
