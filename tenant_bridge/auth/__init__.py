"""Authentication package: login domain sessions and tenant handoffs."""

from .routes import router as auth_router
from .service import AuthService, get_auth_service

__all__ = [
    "AuthService",
    "auth_router",
    "get_auth_service",
]
