"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication and user
management endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from fleetman.app.core.validation import check_username, check_password
from fleetman.app.models.enums import UserRole


class UserRegister(BaseModel):
    """
    Schema for self-service registration.

    Used by POST /auth/register. The role is always "user".
    """
    username: str = Field(..., description="Unique username (letters, numbers, underscores)")
    password: str = Field(..., description="Password (min 6 characters)")

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        return check_username(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password(value)


class UserCreate(UserRegister):
    """Schema for admin-created users, which may carry any role."""
    role: UserRole = Field(default=UserRole.USER, description="User role")


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    """
    username: str = Field(..., description="Username")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by a successful login.
    """
    token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: int = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    role: UserRole = Field(..., description="User role")


class CurrentUser(BaseModel):
    """Identity carried by a verified token."""
    id: int
    username: str
    role: UserRole


class UserResponse(BaseModel):
    """Schema for user information response."""
    id: int
    username: str
    role: UserRole
    created_at: datetime

    class Config:
        from_attributes = True
