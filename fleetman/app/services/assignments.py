"""
Assignment lifecycle service.

The only writer of Assignment rows. Guarantees that every car and every
driver has at most one open assignment (unassigned_at IS NULL), and that
assign / unassign happen as single transactions.

Locking: create_assignment locks the car row, then the driver row, before
touching assignments. Every caller takes the locks in that order, so
concurrent calls on overlapping cars / drivers serialize instead of
deadlocking. The partial unique indexes on the assignments table back
the same invariant at the storage level.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetman.app.core.exceptions import (
    AuthenticationError,
    InvalidInputError,
    ResourceNotFoundError,
    ServiceUnavailableError,
)
from fleetman.app.db.session import atomic
from fleetman.app.models.assignment import Assignment
from fleetman.app.models.car import Car
from fleetman.app.models.driver import Driver
from fleetman.app.models.user import User
from fleetman.app.schemas.assignment import AssignmentDetail

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a client timestamp to UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def _lock_active(db: AsyncSession, model, entity_id: int, resource: str):
    """SELECT ... FOR UPDATE an active car / driver, or raise NotFound."""
    result = await db.execute(
        select(model)
        .where(model.id == entity_id, model.is_active.is_(True))
        .with_for_update()
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise ResourceNotFoundError(resource, entity_id)
    return entity


async def _require_actor(db: AsyncSession, actor_id: int) -> None:
    """The acting user must still exist; tokens outlive deleted accounts."""
    result = await db.execute(select(User.id).where(User.id == actor_id))
    if result.scalar_one_or_none() is None:
        raise AuthenticationError("User no longer exists")


async def close_open_assignments(
    db: AsyncSession,
    actor_id: int,
    closed_at: datetime,
    car_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    assignment_id: Optional[int] = None
) -> int:
    """
    Close open assignments matching the given selector.

    Must run inside the caller's transaction. Exactly one selector is used.

    Returns:
        Number of rows closed (0 when nothing was open)
    """
    stmt = update(Assignment).where(Assignment.unassigned_at.is_(None))

    if car_id is not None:
        stmt = stmt.where(Assignment.car_id == car_id)
    elif driver_id is not None:
        stmt = stmt.where(Assignment.driver_id == driver_id)
    elif assignment_id is not None:
        stmt = stmt.where(Assignment.id == assignment_id)
    else:
        raise InvalidInputError("car_id or assignment_id is required")

    result = await db.execute(
        stmt.values(unassigned_at=closed_at, unassigned_by=actor_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def create_assignment(
    db: AsyncSession,
    car_id: int,
    driver_id: int,
    actor_id: int,
    assigned_at: Optional[datetime] = None
) -> Assignment:
    """
    Assign a car to a driver.

    In one transaction:
    1. Lock the active car, then the active driver
    2. Close the car's open assignment (its previous driver becomes free)
    3. Close the driver's open assignment (their previous car becomes free)
    4. Insert the new open assignment

    Assigning a car to the driver it already has closes the old row and
    opens a new one.

    Raises:
        AuthenticationError: the acting user has been deleted
        ResourceNotFoundError: car or driver missing or inactive
        ServiceUnavailableError: the transaction could not be committed
    """
    now = utcnow()

    try:
        async with atomic(db):
            await _require_actor(db, actor_id)
            await _lock_active(db, Car, car_id, "Car")
            await _lock_active(db, Driver, driver_id, "Driver")

            closed_car = await close_open_assignments(db, actor_id, now, car_id=car_id)
            closed_driver = await close_open_assignments(db, actor_id, now, driver_id=driver_id)

            assignment = Assignment(
                car_id=car_id,
                driver_id=driver_id,
                assigned_by=actor_id,
                assigned_at=as_utc(assigned_at) or now,
            )
            db.add(assignment)
            await db.flush()
    except IntegrityError as exc:
        logger.error(f"Assignment of car {car_id} to driver {driver_id} rolled back: {exc.orig}")
        raise ServiceUnavailableError("Assignment could not be saved, please retry") from exc

    logger.info(
        f"Car {car_id} assigned to driver {driver_id} by user {actor_id} "
        f"(closed {closed_car} car / {closed_driver} driver assignments)"
    )
    await db.refresh(assignment)
    return assignment


async def end_assignment(
    db: AsyncSession,
    actor_id: int,
    car_id: Optional[int] = None,
    assignment_id: Optional[int] = None,
    unassigned_at: Optional[datetime] = None
) -> int:
    """
    End the open assignment of a car, or one assignment by id.

    Idempotent: ending an assignment that is already closed (or a car with
    nothing open) closes nothing and is not an error.

    Returns:
        Number of assignments closed

    Raises:
        InvalidInputError: unassigned_at is earlier than the open row's assigned_at
        AuthenticationError: the acting user has been deleted
    """
    if (car_id is None) == (assignment_id is None):
        raise InvalidInputError("Provide exactly one of car_id or assignment_id")

    closed_at = as_utc(unassigned_at) or utcnow()

    async with atomic(db):
        await _require_actor(db, actor_id)

        if unassigned_at is not None:
            early = await db.execute(
                select(Assignment.id).where(
                    Assignment.unassigned_at.is_(None),
                    Assignment.assigned_at > closed_at,
                    (Assignment.car_id == car_id) if car_id is not None else (Assignment.id == assignment_id),
                ).limit(1)
            )
            if early.scalar_one_or_none() is not None:
                raise InvalidInputError(
                    "unassigned_at cannot be earlier than assigned_at", field="unassigned_at"
                )

        closed = await close_open_assignments(
            db,
            actor_id,
            closed_at,
            car_id=car_id,
            assignment_id=assignment_id
        )

    if closed:
        logger.info(f"Ended {closed} assignment(s) (car_id={car_id}, assignment_id={assignment_id}) by user {actor_id}")
    return closed


def _detail_query():
    return (
        select(
            Assignment,
            Car.license_plate,
            Car.model,
            Driver.name.label("driver_name"),
        )
        .join(Car, Assignment.car_id == Car.id)
        .join(Driver, Assignment.driver_id == Driver.id)
        .execution_options(populate_existing=True)
    )


def _to_detail(row) -> AssignmentDetail:
    assignment, license_plate, model, driver_name = row
    return AssignmentDetail(
        id=assignment.id,
        car_id=assignment.car_id,
        driver_id=assignment.driver_id,
        assigned_by=assignment.assigned_by,
        assigned_at=assignment.assigned_at,
        unassigned_at=assignment.unassigned_at,
        unassigned_by=assignment.unassigned_by,
        license_plate=license_plate,
        model=model,
        driver_name=driver_name,
    )


async def list_open_assignments(db: AsyncSession) -> List[AssignmentDetail]:
    """Open assignments with car / driver display fields, newest first."""
    result = await db.execute(
        _detail_query()
        .where(Assignment.unassigned_at.is_(None))
        .order_by(desc(Assignment.assigned_at), desc(Assignment.id))
    )
    return [_to_detail(row) for row in result.all()]


async def list_history(
    db: AsyncSession,
    car_id: Optional[int] = None,
    driver_id: Optional[int] = None
) -> List[AssignmentDetail]:
    """
    Every assignment (open and closed) of one car or one driver, newest first.

    Inactive cars / drivers keep their history.

    Raises:
        ResourceNotFoundError: the car / driver id does not exist
    """
    if car_id is not None:
        model, entity_id, resource, column = Car, car_id, "Car", Assignment.car_id
    elif driver_id is not None:
        model, entity_id, resource, column = Driver, driver_id, "Driver", Assignment.driver_id
    else:
        raise InvalidInputError("car_id or driver_id is required")

    exists = await db.execute(select(model.id).where(model.id == entity_id))
    if exists.scalar_one_or_none() is None:
        raise ResourceNotFoundError(resource, entity_id)

    result = await db.execute(
        _detail_query()
        .where(column == entity_id)
        .order_by(desc(Assignment.assigned_at), desc(Assignment.id))
    )
    return [_to_detail(row) for row in result.all()]


async def count_open_assignments(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(Assignment.id)).where(Assignment.unassigned_at.is_(None))
    )
    return result.scalar() or 0
