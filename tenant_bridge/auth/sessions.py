"""Session records, persistence backend and the per-request session context."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from threading import Lock, RLock
from typing import Callable, Dict, FrozenSet, Iterator, Optional, Protocol, Tuple, Union

from ..housekeeping import PeriodicTask
from .crypto import generate_token
from .errors import SessionPersistenceError
from .routing import RequestOrigin, ScopeKind, SessionScope

LOGGER = logging.getLogger(__name__)

_LOCK_STRIPES = 64


@dataclass(frozen=True)
class LoginSession:
    principal_id: str
    email: str
    name: str
    tenants: FrozenSet[str] = frozenset()
    last_activity: Optional[datetime] = None

    def touched(self, now: datetime) -> "LoginSession":
        return replace(self, last_activity=now)


@dataclass(frozen=True)
class TenantSession:
    principal_id: str
    tenant_id: str
    email: str
    last_activity: Optional[datetime] = None

    def touched(self, now: datetime) -> "TenantSession":
        return replace(self, last_activity=now)


SessionRecord = Union[LoginSession, TenantSession]


@dataclass(frozen=True)
class SessionContext:
    """What the router, guards and engine know about one request.

    Each stage hands back a new context instead of mutating this one.
    """

    origin: RequestOrigin
    scope: Optional[SessionScope] = None
    session_id: Optional[str] = None
    session: Optional[SessionRecord] = None
    route_tenant: Optional[str] = None

    @property
    def hostname(self) -> str:
        return self.origin.hostname

    @property
    def is_bound(self) -> bool:
        return self.session is not None and bool(self.session.principal_id)

    def with_session(self, session_id: str, session: SessionRecord) -> "SessionContext":
        return replace(self, session_id=session_id, session=session)

    def cleared(self) -> "SessionContext":
        return replace(self, session_id=None, session=None)


class SessionBackend(Protocol):
    """Durable store keyed by cookie scope name and session id.

    ``save`` and ``destroy`` must only return once the change is committed and
    raise on failure.
    """

    def load(self, scope_name: str, session_id: str, now: datetime) -> Optional[SessionRecord]: ...

    def save(self, scope_name: str, session_id: str, record: SessionRecord, expires_at: datetime) -> None: ...

    def destroy(self, scope_name: str, session_id: str) -> None: ...

    def prune(self, now: datetime) -> int: ...


@dataclass
class _StoredSession:
    record: SessionRecord
    expires_at: datetime


@dataclass
class InMemorySessionBackend:
    """Process-local backend; entries vanish once their max-age passes."""

    _entries: Dict[Tuple[str, str], _StoredSession] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock)

    def load(self, scope_name: str, session_id: str, now: datetime) -> Optional[SessionRecord]:
        key = (scope_name, session_id)
        with self._lock:
            stored = self._entries.get(key)
            if stored is None:
                return None
            if stored.expires_at <= now:
                del self._entries[key]
                return None
            return stored.record

    def save(self, scope_name: str, session_id: str, record: SessionRecord, expires_at: datetime) -> None:
        with self._lock:
            self._entries[(scope_name, session_id)] = _StoredSession(record=record, expires_at=expires_at)

    def destroy(self, scope_name: str, session_id: str) -> None:
        with self._lock:
            self._entries.pop((scope_name, session_id), None)

    def prune(self, now: datetime) -> int:
        with self._lock:
            stale = [key for key, stored in self._entries.items() if stored.expires_at <= now]
            for key in stale:
                del self._entries[key]
        return len(stale)


class SessionStore:
    """Two independent session spaces (login and tenant) over one backend.

    Records are addressed by ``(scope.cookie_name, session_id)``, so a session
    created for one cookie scope can never be loaded through another.
    """

    def __init__(
        self,
        backend: SessionBackend,
        *,
        max_age: timedelta,
        clock: Callable[[], datetime],
    ) -> None:
        self._backend = backend
        self._max_age = max_age
        self._clock = clock
        self._stripes = [RLock() for _ in range(_LOCK_STRIPES)]
        self._pruner: Optional[PeriodicTask] = None

    @property
    def max_age(self) -> timedelta:
        return self._max_age

    @staticmethod
    def new_session_id() -> str:
        return generate_token(24)

    @contextmanager
    def locked(self, scope: SessionScope, session_id: Optional[str]) -> Iterator[None]:
        """Serialize read-modify-write sequences on one session."""
        lock = self._stripes[hash((scope.cookie_name, session_id)) % _LOCK_STRIPES]
        with lock:
            yield

    def load(self, scope: SessionScope, session_id: str) -> Optional[SessionRecord]:
        record = self._backend.load(scope.cookie_name, session_id, self._clock())
        if record is None:
            return None
        expected = LoginSession if scope.kind == ScopeKind.LOGIN else TenantSession
        if not isinstance(record, expected):
            LOGGER.error("Session %s in scope %s holds a %s record", session_id[:8], scope.cookie_name, type(record).__name__)
            return None
        return record

    def save(self, scope: SessionScope, session_id: str, record: SessionRecord) -> None:
        try:
            self._backend.save(scope.cookie_name, session_id, record, self._clock() + self._max_age)
        except SessionPersistenceError:
            raise
        except Exception as exc:
            LOGGER.exception("Failed to save session in scope %s", scope.cookie_name)
            raise SessionPersistenceError(f"Failed to save session: {exc}") from exc

    def destroy(self, scope: SessionScope, session_id: str) -> None:
        try:
            self._backend.destroy(scope.cookie_name, session_id)
        except SessionPersistenceError:
            raise
        except Exception as exc:
            LOGGER.exception("Failed to destroy session in scope %s", scope.cookie_name)
            raise SessionPersistenceError(f"Failed to destroy session: {exc}") from exc

    def prune(self) -> int:
        removed = self._backend.prune(self._clock())
        if removed:
            LOGGER.debug("Pruned %d sessions past their max-age", removed)
        return removed

    def start_pruner(self, interval: timedelta) -> None:
        if self._pruner is None:
            self._pruner = PeriodicTask(self.prune, interval_seconds=interval.total_seconds(), name="session-pruner")
        self._pruner.start()

    def stop_pruner(self) -> None:
        if self._pruner is not None:
            self._pruner.stop()
