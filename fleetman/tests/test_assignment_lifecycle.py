"""
Tests for the assignment lifecycle service.

Every scenario ends by checking that no car and no driver has more than
one open assignment.
"""

import random

import pytest
from sqlalchemy import select, func

from fleetman.app.core.exceptions import InvalidInputError, ResourceNotFoundError
from fleetman.app.models.assignment import Assignment
from fleetman.app.models.enums import UserRole
from fleetman.app.models.user import User
from fleetman.app.services import assignments as lifecycle
from fleetman.app.services import catalog


@pytest.fixture
async def actor(db_session):
    user = User(username="dispatcher", password_hash="not-used", role=UserRole.USER)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def fleet(db_session):
    """Two cars and two drivers."""
    cars = [
        await catalog.create_car(db_session, "ABC-1", "Van"),
        await catalog.create_car(db_session, "XYZ-9", "Truck"),
    ]
    drivers = [
        await catalog.create_driver(db_session, "Alice"),
        await catalog.create_driver(db_session, "Bob", "555-0101"),
    ]
    return cars, drivers


async def assert_invariant(db):
    """At most one open assignment per car and per driver."""
    for column in (Assignment.car_id, Assignment.driver_id):
        result = await db.execute(
            select(column, func.count(Assignment.id))
            .where(Assignment.unassigned_at.is_(None))
            .group_by(column)
            .having(func.count(Assignment.id) > 1)
        )
        assert result.all() == []


@pytest.mark.asyncio
async def test_assign_end_and_history_scenario(db_session, actor, fleet):
    (car, _), (alice, _) = fleet

    assignment = await lifecycle.create_assignment(db_session, car.id, alice.id, actor.id)
    assert assignment.is_open
    assert assignment.assigned_by == actor.id

    open_rows = await lifecycle.list_open_assignments(db_session)
    assert len(open_rows) == 1
    assert open_rows[0].license_plate == "ABC-1"
    assert open_rows[0].model == "Van"
    assert open_rows[0].driver_name == "Alice"

    closed = await lifecycle.end_assignment(db_session, actor.id, car_id=car.id)
    assert closed == 1
    assert await lifecycle.list_open_assignments(db_session) == []

    history = await lifecycle.list_history(db_session, car_id=car.id)
    assert len(history) == 1
    assert history[0].id == assignment.id
    assert history[0].unassigned_at is not None
    assert history[0].unassigned_by == actor.id


@pytest.mark.asyncio
async def test_reassigning_car_frees_previous_driver(db_session, actor, fleet):
    (car, _), (x, y) = fleet

    first = await lifecycle.create_assignment(db_session, car.id, x.id, actor.id)
    second = await lifecycle.create_assignment(db_session, car.id, y.id, actor.id)

    open_rows = await lifecycle.list_open_assignments(db_session)
    assert [row.id for row in open_rows] == [second.id]
    assert open_rows[0].driver_id == y.id

    x_history = await lifecycle.list_history(db_session, driver_id=x.id)
    assert [row.id for row in x_history] == [first.id]
    assert x_history[0].unassigned_at is not None

    await assert_invariant(db_session)


@pytest.mark.asyncio
async def test_reassigning_driver_frees_previous_car(db_session, actor, fleet):
    (car_a, car_b), (driver, _) = fleet

    await lifecycle.create_assignment(db_session, car_a.id, driver.id, actor.id)
    second = await lifecycle.create_assignment(db_session, car_b.id, driver.id, actor.id)

    open_rows = await lifecycle.list_open_assignments(db_session)
    assert [row.id for row in open_rows] == [second.id]
    assert open_rows[0].car_id == car_b.id

    await assert_invariant(db_session)


@pytest.mark.asyncio
async def test_cross_reassignment_closes_both_sides(db_session, actor, fleet):
    """A->X and B->Y open; assigning A->Y must close both."""
    (car_a, car_b), (x, y) = fleet

    await lifecycle.create_assignment(db_session, car_a.id, x.id, actor.id)
    await lifecycle.create_assignment(db_session, car_b.id, y.id, actor.id)
    third = await lifecycle.create_assignment(db_session, car_a.id, y.id, actor.id)

    open_rows = await lifecycle.list_open_assignments(db_session)
    assert [row.id for row in open_rows] == [third.id]
    await assert_invariant(db_session)


@pytest.mark.asyncio
async def test_same_pair_reassignment_reopens_with_new_id(db_session, actor, fleet):
    (car, _), (driver, _) = fleet

    first = await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id)
    second = await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id)

    assert second.id != first.id
    history = await lifecycle.list_history(db_session, car_id=car.id)
    assert [row.id for row in history] == [second.id, first.id]
    assert history[0].unassigned_at is None
    assert history[1].unassigned_at is not None


@pytest.mark.asyncio
async def test_end_assignment_is_idempotent(db_session, actor, fleet):
    (car, _), (driver, _) = fleet
    await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id)

    assert await lifecycle.end_assignment(db_session, actor.id, car_id=car.id) == 1
    after_once = await lifecycle.list_history(db_session, car_id=car.id)

    assert await lifecycle.end_assignment(db_session, actor.id, car_id=car.id) == 0
    after_twice = await lifecycle.list_history(db_session, car_id=car.id)

    assert after_once == after_twice


@pytest.mark.asyncio
async def test_end_assignment_by_id(db_session, actor, fleet):
    (car, _), (driver, _) = fleet
    assignment = await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id)

    assert await lifecycle.end_assignment(db_session, actor.id, assignment_id=assignment.id) == 1
    assert await lifecycle.end_assignment(db_session, actor.id, assignment_id=assignment.id) == 0
    assert await lifecycle.list_open_assignments(db_session) == []


@pytest.mark.asyncio
async def test_end_assignment_requires_one_selector(db_session, actor):
    with pytest.raises(InvalidInputError):
        await lifecycle.end_assignment(db_session, actor.id)
    with pytest.raises(InvalidInputError):
        await lifecycle.end_assignment(db_session, actor.id, car_id=1, assignment_id=1)


@pytest.mark.asyncio
async def test_inactive_or_missing_entities_are_not_found(db_session, actor, fleet):
    (car, other_car), (driver, _) = fleet
    await catalog.deactivate_car(db_session, other_car.id, actor.id)

    with pytest.raises(ResourceNotFoundError):
        await lifecycle.create_assignment(db_session, other_car.id, driver.id, actor.id)
    with pytest.raises(ResourceNotFoundError):
        await lifecycle.create_assignment(db_session, car.id, 9999, actor.id)

    # A failed call leaves nothing behind
    count = (await db_session.execute(select(func.count(Assignment.id)))).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_failed_reassignment_keeps_existing_assignment_open(db_session, actor, fleet):
    (car, _), (driver, other_driver) = fleet
    existing = await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id)
    await catalog.deactivate_driver(db_session, other_driver.id, actor.id)

    with pytest.raises(ResourceNotFoundError):
        await lifecycle.create_assignment(db_session, car.id, other_driver.id, actor.id)

    open_rows = await lifecycle.list_open_assignments(db_session)
    assert [row.id for row in open_rows] == [existing.id]


@pytest.mark.asyncio
async def test_explicit_assigned_at_is_kept(db_session, actor, fleet):
    from datetime import datetime, timezone

    (car, _), (driver, _) = fleet
    when = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)

    assignment = await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id, assigned_at=when)

    assert assignment.assigned_at.replace(tzinfo=timezone.utc) == when


@pytest.mark.asyncio
async def test_history_of_unknown_entity_is_not_found(db_session):
    with pytest.raises(ResourceNotFoundError):
        await lifecycle.list_history(db_session, car_id=424242)
    with pytest.raises(ResourceNotFoundError):
        await lifecycle.list_history(db_session, driver_id=424242)


@pytest.mark.asyncio
async def test_deactivating_car_ends_its_assignment(db_session, actor, fleet):
    (car, _), (driver, _) = fleet
    await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id)

    assert await catalog.deactivate_car(db_session, car.id, actor.id) is True
    assert await catalog.deactivate_car(db_session, car.id, actor.id) is False

    assert await lifecycle.list_open_assignments(db_session) == []
    history = await lifecycle.list_history(db_session, car_id=car.id)
    assert len(history) == 1 and history[0].unassigned_by == actor.id


@pytest.mark.asyncio
async def test_invariant_holds_over_random_operations(db_session, actor):
    rng = random.Random(20240501)
    cars = [await catalog.create_car(db_session, f"RND-{i}", "Sedan") for i in range(4)]
    drivers = [await catalog.create_driver(db_session, f"Driver {i}") for i in range(4)]

    for _ in range(60):
        car = rng.choice(cars)
        if rng.random() < 0.7:
            driver = rng.choice(drivers)
            await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id)
        else:
            await lifecycle.end_assignment(db_session, actor.id, car_id=car.id)
        await assert_invariant(db_session)

    open_rows = await lifecycle.list_open_assignments(db_session)
    assert len(open_rows) <= 4
    assert len({row.car_id for row in open_rows}) == len(open_rows)
    assert len({row.driver_id for row in open_rows}) == len(open_rows)


@pytest.mark.asyncio
async def test_unassigned_at_before_assigned_at_is_rejected(db_session, actor, fleet):
    from datetime import datetime, timezone

    (car, _), (driver, _) = fleet
    assigned = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
    assignment = await lifecycle.create_assignment(db_session, car.id, driver.id, actor.id, assigned_at=assigned)

    too_early = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
    with pytest.raises(InvalidInputError):
        await lifecycle.end_assignment(db_session, actor.id, car_id=car.id, unassigned_at=too_early)
    with pytest.raises(InvalidInputError):
        await lifecycle.end_assignment(db_session, actor.id, assignment_id=assignment.id, unassigned_at=too_early)

    open_rows = await lifecycle.list_open_assignments(db_session)
    assert [row.id for row in open_rows] == [assignment.id]

    later = datetime(2024, 5, 1, 17, 0, tzinfo=timezone.utc)
    assert await lifecycle.end_assignment(db_session, actor.id, car_id=car.id, unassigned_at=later) == 1
