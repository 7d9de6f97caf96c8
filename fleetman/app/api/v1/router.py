"""
API Router.

Aggregates all API endpoints.
"""

from fastapi import APIRouter
from fleetman.app.api.v1.endpoints import (
    auth, users, cars, drivers, assignments, stats, audit
)

router = APIRouter()

router.include_router(auth.router)
router.include_router(users.router)
router.include_router(cars.router)
router.include_router(drivers.router)
router.include_router(assignments.router)
router.include_router(stats.router)
router.include_router(audit.router)


@router.get("/health", tags=["Health"])
async def api_health():
    return {"status": "healthy"}
