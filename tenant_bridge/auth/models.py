"""SQLAlchemy models for the user directory."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db import Base, TimestampMixin


class DirectoryUser(TimestampMixin, Base):
    """Person that can sign in on the login domain."""

    __tablename__ = "directory_users"

    id = Column(String(40), primary_key=True, default=lambda: uuid4().hex)
    email = Column(String(320), unique=True, nullable=False, index=True)
    display_name = Column(String(320), nullable=True)
    password_hash = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default="1")

    tenants = relationship(
        "DirectoryUserTenant",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class DirectoryUserTenant(Base):
    """Grant of one tenant to one directory user."""

    __tablename__ = "directory_user_tenants"
    __table_args__ = (UniqueConstraint("user_id", "tenant_id", name="uq_directory_user_tenant"),)

    id = Column(String(40), primary_key=True, default=lambda: uuid4().hex)
    user_id = Column(String(40), ForeignKey("directory_users.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(String(63), nullable=False, index=True)

    user = relationship("DirectoryUser", back_populates="tenants")
