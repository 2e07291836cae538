"""FastAPI application for the Tenant Bridge service."""

from __future__ import annotations

import logging
import re

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth import auth_router, get_auth_service
from .auth.config import BASE_DOMAIN
from .config import API_HOST, API_PORT
from .logging_config import configure_logging
from .tenant import tenant_router, verify_router
from .users import users_router

configure_logging()
LOGGER = logging.getLogger(__name__)
LOGGER.info("Creating Tenant Bridge FastAPI application")

app = FastAPI(
    title="Tenant Bridge API",
    version="1.0.0",
    description="Login-domain authentication bridged to isolated tenant-domain sessions.",
)

# Browsers on the login domain and on every tenant subdomain call the API with cookies.
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=rf"^https?://(([a-z0-9-]+\.)?{re.escape(BASE_DOMAIN)})(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(tenant_router)
app.include_router(verify_router)
app.include_router(users_router)


@app.on_event("startup")
def start_housekeeping() -> None:
    """Build the auth service and start the token sweeper and session pruner."""
    LOGGER.info("Startup: launching session housekeeping")
    get_auth_service().start_housekeeping()


@app.on_event("shutdown")
def stop_housekeeping() -> None:
    """Cancel background sweeps so the process can exit cleanly."""
    get_auth_service().stop_housekeeping()


@app.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    """Readiness probe."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    LOGGER.info("Launching Uvicorn development server on %s:%s", API_HOST, API_PORT)
    uvicorn.run("tenant_bridge.app:app", host=API_HOST, port=API_PORT, reload=True)
