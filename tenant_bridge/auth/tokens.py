"""Single-use handoff tokens bridging the login domain to a tenant domain."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from ..housekeeping import PeriodicTask
from .crypto import generate_token, token_preview
from .errors import TenantMismatchError, TokenExpiredError, TokenInvalidError
from .routing import HostMatcher

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HandoffToken:
    token: str
    principal_id: str
    tenant_id: str
    expires_at: datetime


class TokenStore:
    """In-memory registry of pending handoffs.

    ``redeem`` performs lookup, expiry check and deletion under one lock, so a
    token can be consumed at most once even when two requests race for it.
    """

    def __init__(
        self,
        *,
        ttl: timedelta,
        host_matcher: HostMatcher,
        clock: Clock = utc_now,
    ) -> None:
        self._ttl = ttl
        self._host_matcher = host_matcher
        self._clock = clock
        self._tokens: Dict[str, HandoffToken] = {}
        self._lock = Lock()
        self._sweeper: Optional[PeriodicTask] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._tokens

    def issue(self, principal_id: str, tenant_id: str) -> str:
        token = generate_token(32)
        record = HandoffToken(
            token=token,
            principal_id=principal_id,
            tenant_id=tenant_id,
            expires_at=self._clock() + self._ttl,
        )
        with self._lock:
            self._tokens[token] = record
        LOGGER.debug("Issued handoff token %s for user %s -> %s", token_preview(token), principal_id, tenant_id)
        self.sweep()
        return token

    def redeem(self, token: str, request_host: str) -> Tuple[str, str]:
        """Consume ``token`` on ``request_host`` and return ``(principal_id, tenant_id)``."""
        with self._lock:
            record = self._tokens.get(token)
            if record is None:
                LOGGER.warning("Handoff token %s is unknown or already used", token_preview(token))
                raise TokenInvalidError()
            if self._clock() > record.expires_at:
                del self._tokens[token]
                LOGGER.warning("Handoff token %s expired at %s", token_preview(token), record.expires_at.isoformat())
                raise TokenExpiredError()
            if not self._host_matcher.matches(request_host, record.tenant_id):
                # The token stays redeemable on the right host until it expires.
                LOGGER.warning(
                    "Handoff token %s used on wrong tenant: %s vs %s",
                    token_preview(token),
                    request_host,
                    record.tenant_id,
                )
                raise TenantMismatchError("Invalid tenant")
            del self._tokens[token]
        return record.principal_id, record.tenant_id

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, record in self._tokens.items() if record.expires_at < now]
            for key in expired:
                del self._tokens[key]
        if expired:
            LOGGER.debug("Swept %d expired handoff tokens", len(expired))
        return len(expired)

    def start_sweeper(self, interval: timedelta) -> None:
        if self._sweeper is None:
            self._sweeper = PeriodicTask(
                self.sweep,
                interval_seconds=interval.total_seconds(),
                name="handoff-token-sweeper",
            )
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        if self._sweeper is not None:
            self._sweeper.stop()
