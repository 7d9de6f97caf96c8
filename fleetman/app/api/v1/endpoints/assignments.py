"""
Assignment API Endpoints.

Any authenticated user can pair cars with drivers and end pairings.
Each car and each driver has at most one open assignment; creating a new
one ends whatever the car or the driver had before.
"""

from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleetman.app.db.session import get_db
from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.schemas.assignment import (
    AssignmentCreate, AssignmentResponse, AssignmentDetail,
    UnassignCar, UnassignAssignment, UnassignResponse
)
from fleetman.app.core.dependencies import get_current_user
from fleetman.app.core.redis_client import get_redis
from fleetman.app.services import assignments as lifecycle
from fleetman.app.services.audit import log_event, AuditAction
from fleetman.app.services.stats import invalidate_dashboard_stats

router = APIRouter(prefix="/assignments", tags=["Assignments"])


@router.get("", response_model=List[AssignmentDetail])
async def list_open_assignments(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Open assignments with car and driver details, newest first."""
    return await lifecycle.list_open_assignments(db)


@router.get("/history/car/{car_id}", response_model=List[AssignmentDetail])
async def car_history(
    car_id: int = Path(..., description="Car ID"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Every assignment a car has had, newest first."""
    return await lifecycle.list_history(db, car_id=car_id)


@router.get("/history/driver/{driver_id}", response_model=List[AssignmentDetail])
async def driver_history(
    driver_id: int = Path(..., description="Driver ID"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Every assignment a driver has had, newest first."""
    return await lifecycle.list_history(db, driver_id=driver_id)


@router.post("", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    assignment_data: AssignmentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Assign a car to a driver.

    Ends the car's current assignment and the driver's current assignment
    in the same transaction as the insert.
    """
    assignment = await lifecycle.create_assignment(
        db,
        car_id=assignment_data.car_id,
        driver_id=assignment_data.driver_id,
        actor_id=current_user.id,
        assigned_at=assignment_data.assigned_at
    )
    await invalidate_dashboard_stats(redis)

    await log_event(
        db=db,
        action=AuditAction.ASSIGNMENT_CREATED,
        actor_id=current_user.id,
        actor_username=current_user.username,
        target_type="assignment",
        target_id=assignment.id,
        metadata={"car_id": assignment.car_id, "driver_id": assignment.driver_id}
    )

    return AssignmentResponse.model_validate(assignment)


async def _end(db, redis, current_user: CurrentUser, **selector) -> UnassignResponse:
    closed = await lifecycle.end_assignment(db, actor_id=current_user.id, **selector)

    if closed:
        await invalidate_dashboard_stats(redis)
        await log_event(
            db=db,
            action=AuditAction.ASSIGNMENT_ENDED,
            actor_id=current_user.id,
            actor_username=current_user.username,
            target_type="assignment",
            target_id=selector.get("assignment_id"),
            metadata={"car_id": selector.get("car_id"), "closed": closed}
        )

    return UnassignResponse(closed=closed)


@router.post("/unassign", response_model=UnassignResponse)
async def unassign_car(
    unassign_data: UnassignCar,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """End the car's open assignment. A no-op when nothing is open."""
    return await _end(
        db, redis, current_user,
        car_id=unassign_data.car_id,
        unassigned_at=unassign_data.unassigned_at
    )


@router.patch("/{assignment_id}/unassign", response_model=UnassignResponse)
async def unassign_by_id(
    assignment_id: int = Path(..., description="Assignment ID"),
    unassign_data: Optional[UnassignAssignment] = Body(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """End one assignment by id. A no-op when it is already closed."""
    return await _end(
        db, redis, current_user,
        assignment_id=assignment_id,
        unassigned_at=unassign_data.unassigned_at if unassign_data else None
    )
