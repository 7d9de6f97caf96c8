"""
Security guards for role-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import Optional
from fastapi import Depends
from fleetman.app.models.enums import UserRole
from fleetman.app.core.dependencies import get_auth_service, get_bearer_token
from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.services.auth_service import AuthService


def require_role(required_role: UserRole):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/cars")
        async def create_car(admin: CurrentUser = Depends(require_role(UserRole.ADMIN))):
            ...

    Args:
        required_role: Role the caller's token must carry

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        AuthenticationError 401 if the token is invalid
        InsufficientPermissionsError 403 if the role does not match
    """
    async def role_checker(
        token: Optional[str] = Depends(get_bearer_token),
        auth_service: AuthService = Depends(get_auth_service)
    ) -> CurrentUser:
        return auth_service.authorize(token, required_role)

    return role_checker


require_admin = require_role(UserRole.ADMIN)
