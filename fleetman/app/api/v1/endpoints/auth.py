"""
Authentication API endpoints.

Provides register, login, and current-identity endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from fleetman.app.db.session import get_db
from fleetman.app.schemas.auth import UserRegister, UserLogin, TokenResponse, UserResponse, CurrentUser
from fleetman.app.core.dependencies import get_current_user, get_auth_service
from fleetman.app.services.auth_service import AuthService
from fleetman.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new user.

    The role is always "user"; admins are created by other admins.
    Returns 409 if the username is taken.
    """
    user = await auth_service.register(db, user_data.username, user_data.password)

    await log_event(
        db=db,
        action=AuditAction.USER_REGISTERED,
        actor_id=user.id,
        actor_username=user.username,
        target_type="user",
        target_id=user.id
    )

    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Login user and return JWT token.

    Logs successful and failed login attempts for security monitoring.
    """
    token, user = await auth_service.authenticate(db, credentials.username, credentials.password)

    return TokenResponse(
        token=token,
        token_type="bearer",
        user_id=user.id,
        username=user.username,
        role=user.role
    )


@router.get("/me", response_model=CurrentUser)
async def get_current_user_info(current_user: CurrentUser = Depends(get_current_user)):
    """Identity carried by the caller's token."""
    return current_user
