"""FastAPI dependencies for sessions, collaborators and authentication."""
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import async_sessionmaker

from journey.auth.jwt import jwt_auth
from journey.database import AsyncSessionLocal, get_db  # noqa: F401
from journey.integrations.notification_service import NotificationService

logger = structlog.get_logger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_notification_service() -> NotificationService:
    """Notification collaborator configured from settings."""
    return NotificationService()


def get_session_factory() -> async_sessionmaker:
    """Session factory for components that open their own sessions (dashboard sections)."""
    return AsyncSessionLocal


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, str]:
    """
    Authenticated operator from the bearer token.

    Returns:
        Decoded claims (sub, email, role)

    Raises:
        HTTPException: 401 if the token is missing, expired or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    try:
        payload = jwt_auth.verify_access_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("token_expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning("invalid_token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    structlog.contextvars.bind_contextvars(operator_id=payload.get("sub"))
    return payload
