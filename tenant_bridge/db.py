"""SQLAlchemy wiring for the user directory: engine, sessions and schema bootstrap."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Generator

from dotenv import load_dotenv
from sqlalchemy import Column, DateTime, create_engine, event, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

load_dotenv()

LOGGER = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


def _sqlite_url(path: str) -> str:
    if path == IN_MEMORY:
        return "sqlite://"
    package_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    resolved = os.path.expanduser(path)
    if not os.path.isabs(resolved):
        resolved = os.path.normpath(os.path.join(package_root, resolved))
    parent = os.path.dirname(resolved)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return f"sqlite:///{resolved}"


def database_url() -> str:
    """``BRIDGE_DB_URL`` wins; otherwise a SQLite file at ``BRIDGE_SQLITE_PATH``."""
    explicit = os.getenv("BRIDGE_DB_URL", "").strip()
    if explicit:
        return explicit
    return _sqlite_url(os.getenv("BRIDGE_SQLITE_PATH", "data/tenant_bridge.db"))


def build_engine(url: str) -> Engine:
    kwargs: Dict[str, Any] = {"future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url == "sqlite://":
            # One shared connection, otherwise every pooled connection sees its own empty database.
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    created = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(created, "connect", _enable_sqlite_foreign_keys)
    return created


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


DATABASE_URL = database_url()
engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, future=True)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Commit on success, roll back on any error, always close."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_database() -> None:
    from .auth import models  # noqa: F401  # pylint: disable=unused-import

    Base.metadata.create_all(bind=engine)
    LOGGER.info("Directory schema ready on %s", engine.url.render_as_string(hide_password=True))
