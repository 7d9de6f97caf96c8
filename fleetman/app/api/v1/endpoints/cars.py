"""
Car API endpoints.

Any authenticated user can list cars; only admins register or remove them.
"""

from typing import List
from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from fleetman.app.db.session import get_db
from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.schemas.car import CarCreate, CarResponse
from fleetman.app.core.dependencies import get_current_user
from fleetman.app.core.guards import require_admin
from fleetman.app.core.redis_client import get_redis
from fleetman.app.services import catalog
from fleetman.app.services.audit import log_event, AuditAction
from fleetman.app.services.stats import invalidate_dashboard_stats

router = APIRouter(prefix="/cars", tags=["Cars"])


@router.get("", response_model=List[CarResponse])
async def list_cars(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List active cars ordered by id."""
    cars = await catalog.list_cars(db)
    return [CarResponse.model_validate(car) for car in cars]


@router.post("", response_model=CarResponse, status_code=status.HTTP_201_CREATED)
async def create_car(
    car_data: CarCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """Register a car. Returns 409 if the license plate is already used."""
    car = await catalog.create_car(db, car_data.license_plate, car_data.model)
    await invalidate_dashboard_stats(redis)

    await log_event(
        db=db,
        action=AuditAction.CAR_CREATED,
        actor_id=admin.id,
        actor_username=admin.username,
        target_type="car",
        target_id=car.id,
        metadata={"license_plate": car.license_plate, "model": car.model}
    )

    return CarResponse.model_validate(car)


@router.delete("/{car_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_car(
    car_id: int = Path(..., description="Car ID"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Deactivate a car (soft delete).

    Ends the car's open assignment. Repeating the call is a no-op.
    """
    was_active = await catalog.deactivate_car(db, car_id, admin.id)

    if was_active:
        await invalidate_dashboard_stats(redis)
        await log_event(
            db=db,
            action=AuditAction.CAR_DEACTIVATED,
            actor_id=admin.id,
            actor_username=admin.username,
            target_type="car",
            target_id=car_id
        )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
