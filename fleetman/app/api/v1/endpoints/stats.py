"""
Dashboard stats endpoint.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fleetman.app.db.session import get_db
from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.schemas.stats import DashboardStats
from fleetman.app.core.dependencies import get_current_user
from fleetman.app.core.redis_client import get_redis
from fleetman.app.services.stats import get_dashboard_stats

router = APIRouter(tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """Counts of active cars, active drivers and open assignments."""
    ttl = request.app.state.settings.stats_cache_ttl_seconds
    return await get_dashboard_stats(db, redis, ttl)
