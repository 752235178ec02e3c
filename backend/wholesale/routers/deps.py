"""
Shared route dependencies.
"""
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from wholesale.core.config import settings
from wholesale.core.security import verify_admin_key
from wholesale.services.registry import ServiceRegistry


def get_registry(request: Request) -> ServiceRegistry:
    """The service registry built in the application lifespan."""
    return request.app.state.registry


async def require_admin(
    x_admin_key: Annotated[Optional[str], Header()] = None,
) -> None:
    if not verify_admin_key(x_admin_key, settings.admin_api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )


Registry = Annotated[ServiceRegistry, Depends(get_registry)]
