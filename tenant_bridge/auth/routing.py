"""Host-based selection of the session scope attached to a request.

The login host (``login.<base>``) and every tenant host (``<tenant>.<base>``)
get their own cookie name and cookie domain, so a browser never sends one
domain's session cookie to another. Hosts outside the base domain resolve to
no scope at all.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlencode

from .config import BridgeSettings, HostMatchMode

_LABEL_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def is_tenant_label(value: str) -> bool:
    """True when ``value`` can be the leftmost label of a tenant host."""
    return bool(_LABEL_PATTERN.match(value))


class ScopeKind(str, Enum):
    LOGIN = "login"
    TENANT = "tenant"


@dataclass(frozen=True)
class SessionScope:
    """Cookie scope (name + domain) isolating one session space."""

    kind: ScopeKind
    host: str
    cookie_name: str
    cookie_domain: str
    tenant_label: Optional[str] = None


@dataclass(frozen=True)
class RequestOrigin:
    """Scheme, host name and port the client used to reach us."""

    scheme: str
    hostname: str
    port: Optional[str] = None


def split_host(host_header: Optional[str]) -> Tuple[str, Optional[str]]:
    """Split a Host header into a lowercase host name and an optional port."""
    candidate = (host_header or "").strip().lower()
    if not candidate:
        return "", None
    if candidate.startswith("["):
        # IPv6 literal, never one of our domains.
        closing = candidate.find("]")
        host = candidate[: closing + 1]
        rest = candidate[closing + 1 :]
        return host, rest[1:] if rest.startswith(":") and rest[1:] else None
    host, _, port = candidate.partition(":")
    return host.rstrip("."), port or None


class HostMatcher:
    """Decides whether a request host belongs to a tenant."""

    def __init__(self, *, base_domain: str, mode: HostMatchMode = HostMatchMode.EXACT) -> None:
        self._base_domain = base_domain
        self._mode = mode

    @property
    def mode(self) -> HostMatchMode:
        return self._mode

    def subdomain(self, hostname: str) -> str:
        suffix = f".{self._base_domain}"
        if hostname.endswith(suffix):
            return hostname[: -len(suffix)]
        return hostname

    def matches(self, hostname: str, tenant_id: Optional[str]) -> bool:
        if not tenant_id or not hostname:
            return False
        if self._mode == HostMatchMode.CONTAINS:
            return tenant_id in self.subdomain(hostname)
        return hostname == f"{tenant_id}.{self._base_domain}"


class DomainRouter:
    """Maps request hosts to the session scope they are allowed to use."""

    def __init__(self, settings: BridgeSettings) -> None:
        self._settings = settings
        self.matcher = HostMatcher(base_domain=settings.base_domain, mode=settings.host_match)

    @property
    def login_host(self) -> str:
        return self._settings.login_host

    def is_login_host(self, hostname: str) -> bool:
        return hostname == self.login_host

    def tenant_label(self, hostname: str) -> Optional[str]:
        """Return the tenant label of ``<label>.<base>`` hosts, else None."""
        suffix = f".{self._settings.base_domain}"
        if not hostname.endswith(suffix) or self.is_login_host(hostname):
            return None
        label = hostname[: -len(suffix)]
        if self.matcher.mode == HostMatchMode.CONTAINS:
            # Loose matching also serves composite hosts such as eu.acme.<base>.
            parts = label.split(".")
        else:
            parts = [label]
        if not all(is_tenant_label(part) for part in parts):
            return None
        return label

    def resolve(self, hostname: str) -> Optional[SessionScope]:
        if self.is_login_host(hostname):
            return SessionScope(
                kind=ScopeKind.LOGIN,
                host=hostname,
                cookie_name="login.sid",
                cookie_domain=hostname,
            )
        label = self.tenant_label(hostname)
        if label is None:
            return None
        return SessionScope(
            kind=ScopeKind.TENANT,
            host=hostname,
            cookie_name=hostname.replace(".", "_") + ".sid",
            cookie_domain=hostname,
            tenant_label=label,
        )

    def build_url(self, origin: RequestOrigin, hostname: str, path: str) -> str:
        """Absolute URL on ``hostname`` reusing the request's scheme and port."""
        port = origin.port or self._settings.default_redirect_port
        netloc = f"{hostname}:{port}" if port else hostname
        return f"{origin.scheme}://{netloc}{path}"

    def login_entry_url(self, origin: RequestOrigin, tenant_id: Optional[str] = None) -> str:
        path = "/login"
        if tenant_id:
            path = f"/login?{urlencode({'tenantId': tenant_id})}"
        return self.build_url(origin, self.login_host, path)
