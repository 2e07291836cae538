"""Pydantic schemas for authentication routes."""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    secret: str = Field(..., min_length=1, validation_alias=AliasChoices("secret", "password"))


class PrincipalPublic(BaseModel):
    id: str
    email: EmailStr
    name: str
    tenants: List[str] = Field(default_factory=list)


class LoginResponse(BaseModel):
    user: PrincipalPublic


class LogoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Logout successful"
    tenant_id: Optional[str] = Field(default=None, serialization_alias="tenantId")


class ValidateSessionResponse(BaseModel):
    valid: bool


class PingResponse(BaseModel):
    success: bool = True
    message: str = "Session refreshed"
    timestamp: int = Field(..., description="Server time in epoch milliseconds")


class TenantProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: EmailStr
    name: str
    tenant_id: Optional[str] = Field(default=None, serialization_alias="tenantId")


class TenantListResponse(BaseModel):
    tenants: List[str]
