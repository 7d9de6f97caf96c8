"""
Authentication service.

Verifies credentials, registers users and issues / verifies the bearer
tokens that carry a user's identity and role.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetman.app.core.config import Settings
from fleetman.app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InsufficientPermissionsError,
    InvalidInputError,
)
from fleetman.app.core.jwt import create_access_token, decode_access_token
from fleetman.app.core.security import get_password_hash, pwd_context, verify_password
from fleetman.app.core.validation import check_password, check_username
from fleetman.app.db.session import atomic
from fleetman.app.models.enums import UserRole
from fleetman.app.models.user import User
from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)


class AuthService:
    """
    Token issuing and verification bound to one Settings instance.

    Usage:
        auth = AuthService(settings)
        token, user = await auth.authenticate(db, "alice", "secret1")
        identity = auth.authorize(token, UserRole.ADMIN)
    """

    def __init__(self, settings: Settings):
        self.secret_key = settings.secret_key
        self.algorithm = settings.algorithm
        self.token_lifetime = timedelta(minutes=settings.access_token_expire_minutes)

    def issue_token(self, user: User) -> str:
        """Sign a token embedding the user's id, username and role."""
        payload = {
            "sub": user.username,
            "user_id": user.id,
            "role": user.role.value,
        }
        return create_access_token(payload, self.secret_key, self.algorithm, self.token_lifetime)

    def authorize(self, token: Optional[str], required_role: Optional[UserRole] = None) -> CurrentUser:
        """
        Verify a bearer token and optionally require a role.

        No store lookup is made: the identity comes from the signed claims.

        Raises:
            AuthenticationError: token missing, malformed, expired, badly signed
                or carrying an unknown role
            InsufficientPermissionsError: required_role given and not held
        """
        if not token:
            raise AuthenticationError("Missing bearer token")

        payload = decode_access_token(token, self.secret_key, self.algorithm)
        if payload is None:
            raise AuthenticationError("Could not validate credentials")

        user_id = payload.get("user_id")
        username = payload.get("sub")
        if not isinstance(user_id, int) or not username:
            raise AuthenticationError("Invalid token payload")

        try:
            role = UserRole(payload.get("role"))
        except ValueError:
            raise AuthenticationError("Invalid role in token")

        if required_role is not None and role is not required_role:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {required_role.value}"
            )

        return CurrentUser(id=user_id, username=username, role=role)

    async def authenticate(self, db: AsyncSession, username: str, password: str) -> tuple[str, User]:
        """
        Check a username / password pair and issue a token.

        Raises:
            AuthenticationError: unknown username or wrong password
        """
        result = await db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()

        if user is None:
            # Spend the same hashing time as a real check
            pwd_context.dummy_verify()
            await log_event(
                db=db,
                action=AuditAction.LOGIN_FAILED,
                actor_username=username,
                metadata={"reason": "User not found"}
            )
            raise AuthenticationError("Invalid credentials")

        if not verify_password(password, user.password_hash):
            await log_event(
                db=db,
                action=AuditAction.LOGIN_FAILED,
                actor_id=user.id,
                actor_username=user.username,
                metadata={"reason": "Invalid password"}
            )
            raise AuthenticationError("Invalid credentials")

        token = self.issue_token(user)

        await log_event(
            db=db,
            action=AuditAction.LOGIN_SUCCESS,
            actor_id=user.id,
            actor_username=user.username
        )
        logger.info(f"User '{user.username}' logged in")

        return token, user

    async def create_user(
        self,
        db: AsyncSession,
        username: str,
        password: str,
        role: UserRole = UserRole.USER
    ) -> User:
        """
        Create a user with a hashed password.

        Raises:
            InvalidInputError: username or password fails validation
            ConflictError: username already taken
        """
        try:
            username = check_username(username)
        except ValueError as exc:
            raise InvalidInputError(str(exc), field="username")
        try:
            check_password(password)
        except ValueError as exc:
            raise InvalidInputError(str(exc), field="password")

        existing = await db.execute(select(User.id).where(User.username == username))
        if existing.scalar_one_or_none() is not None:
            # Close the read transaction before reporting
            await db.rollback()
            raise ConflictError("Username already registered", field="username")

        user = User(
            username=username,
            password_hash=get_password_hash(password),
            role=role
        )

        try:
            async with atomic(db):
                db.add(user)
                await db.flush()
        except IntegrityError:
            raise ConflictError("Username already registered", field="username")

        await db.refresh(user)
        return user

    async def register(self, db: AsyncSession, username: str, password: str) -> User:
        """Self-service registration; the role is always USER."""
        return await self.create_user(db, username, password, UserRole.USER)
