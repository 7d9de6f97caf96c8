"""
Dashboard stats schema.
"""

from pydantic import BaseModel, Field


class DashboardStats(BaseModel):
    """Counts of active cars, active drivers and open assignments."""
    cars: int
    drivers: int
    active_assignments: int = Field(..., alias="activeAssignments")

    model_config = {"populate_by_name": True}
