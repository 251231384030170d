"""FastAPI dependency injection utilities."""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.core.security import decode_access_token
from slotbook.db.session import get_db
from slotbook.schemas.actor import Actor
from slotbook.services.notifications import NotificationDispatcher
from slotbook.services.rbac import Permission, RBACService

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> dict | None:
    """Extract and decode the current JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Decoded token payload or None
    """
    if not credentials:
        return None

    payload = decode_access_token(credentials.credentials)
    return payload


async def get_current_actor(
    token: Annotated[dict | None, Depends(get_current_token)],
) -> Actor:
    """Build the acting identity from the bearer token.

    The auth provider has already authenticated the caller; the ``sub``
    and ``role`` claims are trusted as-is.

    Raises:
        HTTPException: If the token is missing, invalid or malformed
    """
    if not token or token.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return Actor(actor_id=token.get("sub") or "", role=token.get("role", "user"))
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not identify an actor",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_permissions(*permissions: Permission):
    """Create a dependency that requires specific permissions.

    Usage:
        @router.get("/", dependencies=[Depends(require_permissions(Permission.AUDIT_READ))])

    Args:
        permissions: Required permissions (actor must have all)

    Returns:
        Dependency function
    """

    async def permission_checker(
        actor: Annotated[Actor, Depends(get_current_actor)],
    ) -> Actor:
        if not RBACService.has_all_permissions(actor.role, list(permissions)):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return permission_checker


async def verify_cron_secret(
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for scheduler-triggered routes.

    When ``cron_secret`` is configured the ``x-cron-secret`` header must
    match it; otherwise the routes are open (local development).
    """
    if not settings.cron_secret:
        return
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Notification dispatcher created in the application lifespan."""
    return request.app.state.dispatcher


def get_request_id(request: Request) -> str | None:
    """Extract request ID from headers.

    Args:
        request: FastAPI request

    Returns:
        Request ID or None
    """
    return request.headers.get("X-Request-ID")


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
RequestId = Annotated[str | None, Depends(get_request_id)]
