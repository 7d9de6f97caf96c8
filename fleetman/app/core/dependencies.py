"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.services.auth_service import AuthService

# HTTP Bearer security scheme; missing headers are reported by AuthService
security = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """The AuthService built by the application factory."""
    return request.app.state.auth_service


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[str]:
    """Raw token from the ``Authorization: Bearer`` header, if any."""
    return credentials.credentials if credentials else None


async def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> CurrentUser:
    """
    FastAPI dependency for JWT authentication.

    Validates the token signature, expiry and role claim. Verification is
    stateless: the identity comes from the token alone.

    Raises:
        AuthenticationError: 401 if the token is missing or invalid
    """
    return auth_service.authorize(token)
