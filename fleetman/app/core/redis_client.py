"""
Redis client initialization and connection management.

This module provides the Redis client used for caching dashboard stats.
"""

import redis.asyncio as redis
from fastapi import Request

from fleetman.app.core.config import Settings


def create_redis_client(settings: Settings) -> redis.Redis:
    """Create an async Redis client (connections are opened lazily)."""
    return redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


async def get_redis(request: Request):
    """
    Get the Redis client attached to the application.

    Used as a FastAPI dependency.
    """
    return request.app.state.redis


async def ping_redis(client) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await client.ping()
    except Exception:
        return False
