"""Storage gateway schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class BackendResponse(BaseModel):
    """Catalog entry for one backend."""

    key: str
    name: str
    enabled: bool
    default: bool


class ProvidersResponse(BaseModel):
    """Schema for the backend catalog."""

    status: str = "success"
    providers: list[BackendResponse]
    default: Optional[str]
    count: int


class SignedUrlResponse(BaseModel):
    """Schema for a generated signed URL."""

    status: str = "success"
    provider: str
    path: str
    signed_url: str
    expiration: int = Field(..., description="Effective TTL in seconds after clamping")
    expires_at: datetime


class UsageResponse(BaseModel):
    """Usage per backend, in request order. Entries may individually be errors."""

    status: str = "success"
    providers: dict[str, dict[str, Any]]
