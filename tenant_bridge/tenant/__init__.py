"""Tenant-domain routes."""

from .routes import router as tenant_router, verify_router

__all__ = ["tenant_router", "verify_router"]
