"""
Driver Pydantic schemas.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional
from fleetman.app.core.validation import check_text


class DriverCreate(BaseModel):
    """Schema for registering a new driver."""
    name: str = Field(..., description="Driver name")
    phone: Optional[str] = Field(None, description="Contact phone number")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return check_text(value, "Name", 100)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return check_text(value, "Phone", 20, required=False)


class DriverResponse(BaseModel):
    """Schema for driver response."""
    id: int
    name: str
    phone: Optional[str]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
