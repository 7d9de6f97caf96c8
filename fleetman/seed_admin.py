"""
Database seeding script for the first admin user.

Registration only ever creates "user" accounts, so the first admin has to
be created here. Run it after the database is reachable:

    python -m fleetman.seed_admin
"""

import asyncio
import logging

from sqlalchemy import select

from fleetman.app.core.config import Settings, get_settings
from fleetman.app.db.session import Base, create_engine_from_settings, create_session_factory
from fleetman.app.models.enums import UserRole
from fleetman.app.models.user import User
from fleetman.app.services.auth_service import AuthService

# Register the remaining tables with Base before create_all
from fleetman.app.models.car import Car  # noqa: F401
from fleetman.app.models.driver import Driver  # noqa: F401
from fleetman.app.models.assignment import Assignment  # noqa: F401
from fleetman.app.models.audit_log import AuditLog  # noqa: F401

logger = logging.getLogger(__name__)


async def seed_admin(session_factory, settings: Settings) -> bool:
    """
    Create the admin from ADMIN_USERNAME / ADMIN_PASSWORD if missing.

    Returns:
        True if a user was created, False if it already existed
    """
    async with session_factory() as db:
        result = await db.execute(
            select(User).where(User.username == settings.admin_username)
        )
        if result.scalar_one_or_none() is not None:
            logger.info(f"User '{settings.admin_username}' already exists, skipping seeding")
            return False

        await db.rollback()
        await AuthService(settings).create_user(
            db, settings.admin_username, settings.admin_password, UserRole.ADMIN
        )
        logger.info(f"Created admin user '{settings.admin_username}'")
        return True


async def main():
    settings = get_settings()
    engine = create_engine_from_settings(settings)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await seed_admin(create_session_factory(engine), settings)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    asyncio.run(main())
