"""
Car Pydantic schemas.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from fleetman.app.core.validation import check_text


class CarCreate(BaseModel):
    """Schema for registering a new car."""
    license_plate: str = Field(..., description="Unique license plate")
    model: str = Field(..., description="Car model (e.g., Van)")

    @field_validator("license_plate")
    @classmethod
    def validate_plate(cls, value: str) -> str:
        return check_text(value, "License plate", 20)

    @field_validator("model")
    @classmethod
    def validate_model(cls, value: str) -> str:
        return check_text(value, "Model", 50)


class CarResponse(BaseModel):
    """Schema for car response."""
    id: int
    license_plate: str
    model: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
