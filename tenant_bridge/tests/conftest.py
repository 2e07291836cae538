from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator

# Keep imports of the db module away from the on-disk database.
os.environ.setdefault("BRIDGE_SQLITE_PATH", ":memory:")
os.environ.setdefault("BRIDGE_SEED_DEMO_USER", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from tenant_bridge.auth import models as auth_models  # noqa: F401
from tenant_bridge.auth.config import BridgeSettings
from tenant_bridge.auth.directory import Principal, UserDirectory
from tenant_bridge.auth.service import AuthService
from tenant_bridge.db import Base, build_engine


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings()


@pytest.fixture
def directory() -> UserDirectory:
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)

    @contextmanager
    def _session_scope():
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return UserDirectory(session_factory=_session_scope)


@pytest.fixture
def principal(directory: UserDirectory) -> Principal:
    return directory.create_user(
        email="john@example.com",
        secret="password123",
        name="John Doe",
        tenants=["acme", "globex"],
    )


@pytest.fixture
def auth_service(settings: BridgeSettings, directory: UserDirectory, clock: FakeClock) -> AuthService:
    return AuthService(settings=settings, directory=directory, clock=clock)


@pytest.fixture
def client(monkeypatch, auth_service: AuthService, principal: Principal) -> Iterator[TestClient]:
    from tenant_bridge.app import app

    monkeypatch.setattr("tenant_bridge.auth.service._AUTH_SERVICE", auth_service)
    with TestClient(app, base_url="http://login.lvh.me") as test_client:
        yield test_client
