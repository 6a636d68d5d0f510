"""
FastAPI Authentication Dependencies for Microservices

Identity is established upstream (API gateway); services read it from
headers. Internal service calls authenticate with a shared secret.
"""

from fastapi import Header, HTTPException, status, Request
from typing import Optional
import logging

from core.internal_service_auth import INTERNAL_SERVICE_SECRET

logger = logging.getLogger(__name__)

INTERNAL_SERVICE_USER = "internal-service"


async def require_auth_or_internal_service(
    request: Request,
    user_id: Optional[str] = Header(None, alias="user-id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Authenticate a user or an internal service.

    Priority:
    1. Internal service (X-Internal-Service + X-Internal-Service-Secret)
    2. User identity (user-id or X-User-Id)

    Returns:
        The user ID, or "internal-service"

    Raises:
        HTTPException 401: no valid identity
    """
    if x_internal_service == "true" and x_internal_service_secret:
        if x_internal_service_secret == INTERNAL_SERVICE_SECRET:
            logger.debug(f"Internal service request to {request.url.path}")
            return INTERNAL_SERVICE_USER
        client_host = request.client.host if request.client else "unknown"
        logger.warning(f"Invalid internal service secret from {client_host}")

    user_id_value = (user_id or x_user_id or "").strip()
    if user_id_value:
        return user_id_value

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="User authentication required"
    )


async def require_user(
    user_id: Optional[str] = Header(None, alias="user-id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """
    Authenticate an end user only; internal services are not payers.

    Raises:
        HTTPException 401: no user identity
    """
    value = (user_id or x_user_id or "").strip()
    if not value or value == INTERNAL_SERVICE_USER:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication required"
        )
    return value


async def require_internal_service(
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Authenticate internal service calls only.

    Raises:
        HTTPException 401: missing or wrong service secret
    """
    if x_internal_service == "true" and x_internal_service_secret == INTERNAL_SERVICE_SECRET:
        return INTERNAL_SERVICE_USER
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Internal service authentication required"
    )


def is_internal_service_request(user_id: str) -> bool:
    """True if the identity returned by an auth dependency is an internal service"""
    return user_id == INTERNAL_SERVICE_USER


__all__ = [
    "INTERNAL_SERVICE_USER",
    "require_auth_or_internal_service",
    "require_user",
    "require_internal_service",
    "is_internal_service_request"
]
