"""
Dashboard stats service.

Aggregate counts are cached in Redis for a short time, under a key that
carries a generation number. Every car, driver or assignment change bumps
the generation, so a count computed before the change can only be written
under the old key and is never read again. Redis errors fall back to the
database.
"""

import json
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from fleetman.app.models.car import Car
from fleetman.app.models.driver import Driver
from fleetman.app.schemas.stats import DashboardStats
from fleetman.app.services.assignments import count_open_assignments

logger = logging.getLogger(__name__)

STATS_CACHE_KEY = "fleetman:stats:dashboard"
STATS_GENERATION_KEY = "fleetman:stats:generation"


def stats_cache_key(generation) -> str:
    return f"{STATS_CACHE_KEY}:{int(generation or 0)}"


async def compute_dashboard_stats(db: AsyncSession) -> DashboardStats:
    """Count active cars, active drivers and open assignments."""
    cars = (await db.execute(
        select(func.count(Car.id)).where(Car.is_active.is_(True))
    )).scalar() or 0
    drivers = (await db.execute(
        select(func.count(Driver.id)).where(Driver.is_active.is_(True))
    )).scalar() or 0
    active_assignments = await count_open_assignments(db)

    return DashboardStats(cars=cars, drivers=drivers, active_assignments=active_assignments)


async def get_dashboard_stats(db: AsyncSession, redis, ttl_seconds: int) -> DashboardStats:
    """Dashboard stats, served from the Redis cache when present."""
    cache_key = None
    try:
        # Read the generation before counting
        cache_key = stats_cache_key(await redis.get(STATS_GENERATION_KEY))
        cached = await redis.get(cache_key)
        if cached:
            return DashboardStats.model_validate(json.loads(cached))
    except Exception as e:
        logger.warning(f"Stats cache read failed, using database: {e}")

    stats = await compute_dashboard_stats(db)

    if cache_key is not None:
        try:
            await redis.set(cache_key, stats.model_dump_json(by_alias=True), ex=ttl_seconds)
        except Exception as e:
            logger.warning(f"Stats cache write failed: {e}")

    return stats


async def invalidate_dashboard_stats(redis) -> None:
    """Start a new cache generation after a fleet change."""
    try:
        await redis.incr(STATS_GENERATION_KEY)
    except Exception as e:
        logger.warning(f"Stats cache invalidation failed: {e}")
