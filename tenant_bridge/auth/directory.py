"""User directory: resolves credentials to principals.

The auth engine only depends on the :class:`CredentialValidator` protocol;
:class:`UserDirectory` is the SQL-backed implementation the service ships with.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import session_scope
from .crypto import hash_password, verify_password
from .models import DirectoryUser, DirectoryUserTenant
from .routing import is_tenant_label

LOGGER = logging.getLogger(__name__)

DEMO_USER_EMAIL = "john@example.com"
DEMO_USER_PASSWORD = "password123"
DEMO_USER_NAME = "John Doe"
DEMO_USER_TENANTS = ("acme", "globex")


@dataclass(frozen=True)
class Principal:
    """Authenticated identity. Never carries the secret."""

    id: str
    email: str
    name: str
    tenants: FrozenSet[str]


@dataclass(frozen=True)
class PrincipalRecord:
    """Directory entry: a principal plus the stored password hash."""

    principal: Principal
    password_hash: str
    is_active: bool = True


class CredentialValidator(Protocol):
    def find_by_email(self, email: str) -> Optional[PrincipalRecord]: ...

    def find_by_id(self, principal_id: str, tenant_id: str) -> Optional[PrincipalRecord]: ...

    def verify_secret(self, record: PrincipalRecord, secret: str) -> bool: ...

    def get_principal(self, principal_id: str) -> Optional[Principal]: ...

    def list_tenants(self) -> List[str]: ...


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _to_record(user: DirectoryUser) -> PrincipalRecord:
    principal = Principal(
        id=user.id,
        email=user.email,
        name=(user.display_name or user.email),
        tenants=frozenset(grant.tenant_id for grant in user.tenants),
    )
    return PrincipalRecord(principal=principal, password_hash=user.password_hash, is_active=bool(user.is_active))


class UserDirectory:
    """SQLAlchemy-backed credential validator."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
    ) -> None:
        self._session_scope = session_factory

    def has_any_users(self) -> bool:
        with self._session_scope() as db:
            count = db.execute(select(func.count()).select_from(DirectoryUser)).scalar() or 0
        return count > 0

    def create_user(
        self,
        *,
        email: str,
        secret: str,
        name: Optional[str] = None,
        tenants: Iterable[str] = (),
    ) -> Principal:
        normalized = normalize_email(email)
        display_name = (name or normalized).strip() or normalized
        tenant_ids = sorted({tenant.strip().lower() for tenant in tenants if tenant and tenant.strip()})
        invalid = [tenant_id for tenant_id in tenant_ids if not is_tenant_label(tenant_id)]
        if invalid:
            raise ValueError(f"Tenant ids must be valid host labels: {', '.join(invalid)}")
        with self._session_scope() as db:
            existing = db.execute(
                select(DirectoryUser).where(DirectoryUser.email == normalized)
            ).scalar_one_or_none()
            if existing:
                raise ValueError("User already exists")
            user = DirectoryUser(
                email=normalized,
                display_name=display_name,
                password_hash=hash_password(secret),
                is_active=True,
            )
            user.tenants = [DirectoryUserTenant(tenant_id=tenant_id) for tenant_id in tenant_ids]
            db.add(user)
            db.flush()
            record = _to_record(user)
        LOGGER.info("Created directory user %s with tenants %s", record.principal.id, tenant_ids)
        return record.principal

    def find_by_email(self, email: str) -> Optional[PrincipalRecord]:
        normalized = normalize_email(email)
        with self._session_scope() as db:
            user = db.execute(
                select(DirectoryUser).where(DirectoryUser.email == normalized)
            ).scalar_one_or_none()
            if user is None:
                return None
            return _to_record(user)

    def find_by_id(self, principal_id: str, tenant_id: str) -> Optional[PrincipalRecord]:
        """Tenant-scoped lookup: only returns the user if ``tenant_id`` is granted."""
        with self._session_scope() as db:
            user = db.execute(
                select(DirectoryUser)
                .join(DirectoryUserTenant, DirectoryUserTenant.user_id == DirectoryUser.id)
                .where(DirectoryUser.id == principal_id, DirectoryUserTenant.tenant_id == tenant_id)
            ).scalar_one_or_none()
            if user is None or not user.is_active:
                return None
            return _to_record(user)

    def get_principal(self, principal_id: str) -> Optional[Principal]:
        with self._session_scope() as db:
            user = db.get(DirectoryUser, principal_id)
            if user is None:
                return None
            return _to_record(user).principal

    def verify_secret(self, record: PrincipalRecord, secret: str) -> bool:
        if not record.is_active or not record.password_hash:
            return False
        return verify_password(secret, record.password_hash)

    def list_tenants(self) -> List[str]:
        with self._session_scope() as db:
            rows = db.execute(
                select(DirectoryUserTenant.tenant_id).distinct().order_by(DirectoryUserTenant.tenant_id)
            ).scalars()
            return list(rows)

    def seed_demo_user(self) -> Optional[Principal]:
        """Provision the demo account into an empty directory."""
        if self.has_any_users():
            return None
        LOGGER.warning("Directory is empty; seeding demo user %s", DEMO_USER_EMAIL)
        return self.create_user(
            email=DEMO_USER_EMAIL,
            secret=DEMO_USER_PASSWORD,
            name=DEMO_USER_NAME,
            tenants=DEMO_USER_TENANTS,
        )
