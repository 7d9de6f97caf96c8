"""
User management API endpoints (admin only).
"""

from typing import List
from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from fleetman.app.db.session import get_db
from fleetman.app.schemas.auth import UserCreate, UserResponse, CurrentUser
from fleetman.app.core.dependencies import get_auth_service
from fleetman.app.core.guards import require_admin
from fleetman.app.services.auth_service import AuthService
from fleetman.app.services import catalog
from fleetman.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=List[UserResponse])
async def list_users(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List every user ordered by id."""
    users = await catalog.list_users(db)
    return [UserResponse.model_validate(user) for user in users]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Create a user with any role."""
    user = await auth_service.create_user(db, user_data.username, user_data.password, user_data.role)

    await log_event(
        db=db,
        action=AuditAction.USER_CREATED,
        actor_id=admin.id,
        actor_username=admin.username,
        target_type="user",
        target_id=user.id,
        metadata={"username": user.username, "role": user.role.value}
    )

    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int = Path(..., description="User ID"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a user.

    Admins cannot delete themselves or any other admin.
    """
    user = await catalog.delete_user(db, user_id, admin.id)

    await log_event(
        db=db,
        action=AuditAction.USER_DELETED,
        actor_id=admin.id,
        actor_username=admin.username,
        target_type="user",
        target_id=user_id,
        metadata={"username": user.username}
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
