"""Role checks for journey admin endpoints.

- Admin: everything, including reminder sends and template deletion
- Marketing: templates, A/B variants and reminders
- Analyst: read-only dashboards
"""
from enum import Enum
from functools import wraps
from typing import Callable, List

import structlog
from fastapi import HTTPException, status

logger = structlog.get_logger(__name__)


class Role(str, Enum):
    """Operator roles with hierarchical permissions."""

    ADMIN = "Admin"
    MARKETING = "Marketing"
    ANALYST = "Analyst"


# Higher roles inherit permissions from lower roles
ROLE_HIERARCHY = {
    Role.ADMIN: [Role.ADMIN, Role.MARKETING, Role.ANALYST],
    Role.MARKETING: [Role.MARKETING, Role.ANALYST],
    Role.ANALYST: [Role.ANALYST],
}


def check_role_hierarchy(user_role: str, required_roles: List[Role]) -> bool:
    """True if ``user_role`` grants any of ``required_roles``."""
    try:
        user_role_enum = Role(user_role)
    except ValueError:
        return False

    allowed = ROLE_HIERARCHY.get(user_role_enum, [])
    return any(role in allowed for role in required_roles)


def require_roles(*required_roles: Role):
    """
    Decorator to require specific roles for endpoint access.

    Usage:
        @require_roles(Role.MARKETING)
        async def create_template(..., current_user: dict = Depends(get_current_user)):
            ...

    Raises:
        HTTPException: 401 without a user, 403 if the role is insufficient
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            current_user = kwargs.get("current_user")

            if not current_user:
                logger.error("rbac_missing_current_user", endpoint=func.__name__)
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Authentication required",
                )

            user_role = current_user.get("role")
            if not check_role_hierarchy(user_role, list(required_roles)):
                logger.warning(
                    "rbac_permission_denied",
                    user_id=current_user.get("sub"),
                    user_role=user_role,
                    required_roles=[r.value for r in required_roles],
                    endpoint=func.__name__,
                )
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Insufficient permissions. Required roles: {', '.join(r.value for r in required_roles)}",
                )

            return await func(*args, **kwargs)

        return wrapper
    return decorator
