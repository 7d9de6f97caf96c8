"""
Driver API endpoints.

Any authenticated user can list drivers; only admins register or remove them.
"""

from typing import List
from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from fleetman.app.db.session import get_db
from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.schemas.driver import DriverCreate, DriverResponse
from fleetman.app.core.dependencies import get_current_user
from fleetman.app.core.guards import require_admin
from fleetman.app.core.redis_client import get_redis
from fleetman.app.services import catalog
from fleetman.app.services.audit import log_event, AuditAction
from fleetman.app.services.stats import invalidate_dashboard_stats

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.get("", response_model=List[DriverResponse])
async def list_drivers(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List active drivers ordered by id."""
    drivers = await catalog.list_drivers(db)
    return [DriverResponse.model_validate(driver) for driver in drivers]


@router.post("", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """Register a driver."""
    driver = await catalog.create_driver(db, driver_data.name, driver_data.phone)
    await invalidate_dashboard_stats(redis)

    await log_event(
        db=db,
        action=AuditAction.DRIVER_CREATED,
        actor_id=admin.id,
        actor_username=admin.username,
        target_type="driver",
        target_id=driver.id,
        metadata={"name": driver.name}
    )

    return DriverResponse.model_validate(driver)


@router.delete("/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_driver(
    driver_id: int = Path(..., description="Driver ID"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Deactivate a driver (soft delete).

    Ends the driver's open assignment. Repeating the call is a no-op.
    """
    was_active = await catalog.deactivate_driver(db, driver_id, admin.id)

    if was_active:
        await invalidate_dashboard_stats(redis)
        await log_event(
            db=db,
            action=AuditAction.DRIVER_DEACTIVATED,
            actor_id=admin.id,
            actor_username=admin.username,
            target_type="driver",
            target_id=driver_id
        )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
