"""
Catalog service for cars, drivers and users.

Plain create / list / remove operations. Cars and drivers are soft
deleted; deactivating one also ends its open assignment.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetman.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    InvalidInputError,
    ResourceNotFoundError,
)
from fleetman.app.db.session import atomic
from fleetman.app.models.assignment import Assignment
from fleetman.app.models.car import Car
from fleetman.app.models.driver import Driver
from fleetman.app.models.enums import UserRole
from fleetman.app.models.user import User
from fleetman.app.services.assignments import close_open_assignments, utcnow

logger = logging.getLogger(__name__)


# --- Cars ---

async def create_car(db: AsyncSession, license_plate: str, model: str) -> Car:
    """
    Register a car.

    Raises:
        ConflictError: the plate is already used by any car, active or not
    """
    existing = await db.execute(select(Car.id).where(Car.license_plate == license_plate))
    if existing.scalar_one_or_none() is not None:
        await db.rollback()
        raise ConflictError(f"License plate '{license_plate}' already exists", field="license_plate")

    car = Car(license_plate=license_plate, model=model, is_active=True)
    try:
        async with atomic(db):
            db.add(car)
            await db.flush()
    except IntegrityError:
        raise ConflictError(f"License plate '{license_plate}' already exists", field="license_plate")

    await db.refresh(car)
    return car


async def list_cars(db: AsyncSession) -> List[Car]:
    """Active cars ordered by id."""
    result = await db.execute(
        select(Car).where(Car.is_active.is_(True)).order_by(Car.id)
    )
    return list(result.scalars().all())


async def deactivate_car(db: AsyncSession, car_id: int, actor_id: int) -> bool:
    """
    Soft delete a car and end its open assignment.

    Idempotent for cars that are already inactive.

    Returns:
        True if the car was active before the call
    """
    async with atomic(db):
        result = await db.execute(select(Car).where(Car.id == car_id).with_for_update())
        car = result.scalar_one_or_none()
        if car is None:
            raise ResourceNotFoundError("Car", car_id)

        was_active = car.is_active
        if was_active:
            car.is_active = False
            await close_open_assignments(db, actor_id, utcnow(), car_id=car_id)

    return was_active


# --- Drivers ---

async def create_driver(db: AsyncSession, name: str, phone: Optional[str] = None) -> Driver:
    """Register a driver."""
    driver = Driver(name=name, phone=phone, is_active=True)
    async with atomic(db):
        db.add(driver)
        await db.flush()

    await db.refresh(driver)
    return driver


async def list_drivers(db: AsyncSession) -> List[Driver]:
    """Active drivers ordered by id."""
    result = await db.execute(
        select(Driver).where(Driver.is_active.is_(True)).order_by(Driver.id)
    )
    return list(result.scalars().all())


async def deactivate_driver(db: AsyncSession, driver_id: int, actor_id: int) -> bool:
    """
    Soft delete a driver and end their open assignment.

    Returns:
        True if the driver was active before the call
    """
    async with atomic(db):
        result = await db.execute(select(Driver).where(Driver.id == driver_id).with_for_update())
        driver = result.scalar_one_or_none()
        if driver is None:
            raise ResourceNotFoundError("Driver", driver_id)

        was_active = driver.is_active
        if was_active:
            driver.is_active = False
            await close_open_assignments(db, actor_id, utcnow(), driver_id=driver_id)

    return was_active


# --- Users ---

async def list_users(db: AsyncSession) -> List[User]:
    """All users ordered by id."""
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def delete_user(db: AsyncSession, user_id: int, actor_id: int) -> User:
    """
    Delete a user.

    Rules:
    - An admin cannot delete themselves
    - Admin-role users cannot be deleted
    - Users referenced by assignment history cannot be deleted

    Returns:
        The deleted user (detached)
    """
    if user_id == actor_id:
        raise InvalidInputError("Cannot delete yourself", field="user_id")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        await db.rollback()
        raise ResourceNotFoundError("User", user_id)

    if user.role is UserRole.ADMIN:
        await db.rollback()
        raise InsufficientPermissionsError("Admin users cannot be deleted")

    referenced = await db.execute(
        select(Assignment.id).where(
            (Assignment.assigned_by == user_id) | (Assignment.unassigned_by == user_id)
        ).limit(1)
    )
    if referenced.scalar_one_or_none() is not None:
        await db.rollback()
        raise ConflictError("User is referenced by assignment history and cannot be deleted")

    try:
        async with atomic(db):
            await db.delete(user)
    except IntegrityError:
        raise ConflictError("User is referenced by other records and cannot be deleted")

    logger.info(f"User {user_id} deleted by user {actor_id}")
    return user
