"""
Assignment schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class AssignmentCreate(BaseModel):
    """Schema for assigning a car to a driver."""
    car_id: int
    driver_id: int
    assigned_at: Optional[datetime] = Field(None, description="Defaults to now")


class UnassignCar(BaseModel):
    """Schema for ending whatever assignment a car currently has."""
    car_id: int
    unassigned_at: Optional[datetime] = Field(None, description="Defaults to now")


class UnassignAssignment(BaseModel):
    """Optional body for ending one assignment by id."""
    unassigned_at: Optional[datetime] = None


class AssignmentResponse(BaseModel):
    """Schema for a single assignment row."""
    id: int
    car_id: int
    driver_id: int
    assigned_by: int
    assigned_at: datetime
    unassigned_at: Optional[datetime] = None
    unassigned_by: Optional[int] = None

    class Config:
        from_attributes = True


class AssignmentDetail(AssignmentResponse):
    """Assignment joined with car and driver display fields."""
    license_plate: str
    model: str
    driver_name: str


class UnassignResponse(BaseModel):
    """Result of ending assignments."""
    closed: int
