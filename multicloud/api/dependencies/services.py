"""
Service dependencies.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status

from multicloud.core.config import Settings
from multicloud.services.gateway import StorageGateway


async def get_gateway(request: Request) -> StorageGateway:
    """Get the gateway built at startup."""
    return request.app.state.gateway


async def get_app_settings(request: Request) -> Settings:
    """Get the settings the app was created with."""
    return request.app.state.settings


def ensure_provider(gateway: StorageGateway, provider: Optional[str]) -> Optional[str]:
    """Reject names that are not in the backend catalog."""
    if provider is not None and not gateway.registry.has(provider):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown provider: {provider}. "
                   f"Available: {', '.join(gateway.registry.names(enabled_only=False))}",
        )
    return provider


async def get_provider(
    provider: Optional[str] = Query(None, description="Backend name; default backend if omitted"),
    gateway: StorageGateway = Depends(get_gateway),
) -> Optional[str]:
    """Validated `provider` query parameter."""
    return ensure_provider(gateway, provider)
