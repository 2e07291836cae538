"""Configuration helpers for the Tenant Bridge service."""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from a .env file if present.
load_dotenv()


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on blank values.

    Args:
        name (str): Environment variable name.
        default (int): Value used when the variable is unset or empty.
    Returns:
        int: The parsed integer.
    """
    raw: Optional[str] = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw.strip())


API_HOST = os.getenv("BRIDGE_API_HOST", "0.0.0.0")
API_PORT = _int_env("BRIDGE_API_PORT", 3000)

# Seed john@example.com into an empty directory on startup (demo deployments).
SEED_DEMO_USER = _bool_env("BRIDGE_SEED_DEMO_USER", default=True)
