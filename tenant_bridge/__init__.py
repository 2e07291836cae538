"""Tenant Bridge: cross-domain session bridging for multi-tenant hosts."""
