"""Configuration helpers for the authentication subsystem."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from dotenv import load_dotenv

load_dotenv()


class HostMatchMode(str, Enum):
    """How a request host is bound to a tenant identifier."""

    EXACT = "exact"
    CONTAINS = "contains"


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


BASE_DOMAIN = os.getenv("BRIDGE_BASE_DOMAIN", "lvh.me").strip().strip(".").lower()
LOGIN_SUBDOMAIN = os.getenv("BRIDGE_LOGIN_SUBDOMAIN", "login").strip().lower()

HANDOFF_TOKEN_TTL_SECONDS = int(os.getenv("BRIDGE_HANDOFF_TOKEN_TTL_SECONDS", "30"))
TENANT_IDLE_TIMEOUT_MS = int(os.getenv("BRIDGE_TENANT_IDLE_TIMEOUT_MS", str(20 * 60 * 1000)))
SESSION_MAX_AGE_MS = int(os.getenv("BRIDGE_SESSION_MAX_AGE_MS", str(60 * 60 * 1000)))
TOKEN_SWEEP_INTERVAL_MS = int(os.getenv("BRIDGE_TOKEN_SWEEP_INTERVAL_MS", str(15 * 60 * 1000)))

TENANT_HOST_MATCH = HostMatchMode(os.getenv("BRIDGE_TENANT_HOST_MATCH", HostMatchMode.EXACT.value).lower())

LOGIN_SESSION_SECRET = os.getenv("BRIDGE_LOGIN_SESSION_SECRET", "login-secret")
TENANT_SESSION_SECRET = os.getenv("BRIDGE_TENANT_SESSION_SECRET", "tenant-secret")

COOKIE_SECURE = _bool_env("BRIDGE_COOKIE_SECURE", default=False)
COOKIE_HTTPONLY = _bool_env("BRIDGE_COOKIE_HTTPONLY", default=True)
COOKIE_SAMESITE = os.getenv("BRIDGE_COOKIE_SAMESITE", "lax").lower()
COOKIE_PATH = os.getenv("BRIDGE_COOKIE_PATH", "/")

# Port appended to redirect targets when the incoming Host header carries none.
DEFAULT_REDIRECT_PORT = os.getenv("BRIDGE_DEFAULT_REDIRECT_PORT", "5173").strip()


@dataclass(frozen=True)
class BridgeSettings:
    """Immutable snapshot of the knobs the auth engine depends on."""

    base_domain: str = "lvh.me"
    login_subdomain: str = "login"
    handoff_token_ttl: timedelta = timedelta(seconds=30)
    tenant_idle_timeout: timedelta = timedelta(milliseconds=1_200_000)
    session_max_age: timedelta = timedelta(milliseconds=3_600_000)
    token_sweep_interval: timedelta = timedelta(milliseconds=900_000)
    host_match: HostMatchMode = HostMatchMode.EXACT
    login_session_secret: str = "login-secret"
    tenant_session_secret: str = "tenant-secret"
    cookie_secure: bool = False
    cookie_httponly: bool = True
    cookie_samesite: str = "lax"
    cookie_path: str = "/"
    default_redirect_port: str = "5173"

    @property
    def login_host(self) -> str:
        return f"{self.login_subdomain}.{self.base_domain}"

    @classmethod
    def from_env(cls) -> "BridgeSettings":
        """Build settings from the module-level environment values."""
        return cls(
            base_domain=BASE_DOMAIN,
            login_subdomain=LOGIN_SUBDOMAIN,
            handoff_token_ttl=timedelta(seconds=HANDOFF_TOKEN_TTL_SECONDS),
            tenant_idle_timeout=timedelta(milliseconds=TENANT_IDLE_TIMEOUT_MS),
            session_max_age=timedelta(milliseconds=SESSION_MAX_AGE_MS),
            token_sweep_interval=timedelta(milliseconds=TOKEN_SWEEP_INTERVAL_MS),
            host_match=TENANT_HOST_MATCH,
            login_session_secret=LOGIN_SESSION_SECRET,
            tenant_session_secret=TENANT_SESSION_SECRET,
            cookie_secure=COOKIE_SECURE,
            cookie_httponly=COOKIE_HTTPONLY,
            cookie_samesite=COOKIE_SAMESITE,
            cookie_path=COOKIE_PATH,
            default_redirect_port=DEFAULT_REDIRECT_PORT,
        )
