"""
Assignment database model.

Records one car-to-driver pairing. A row is open while unassigned_at is
NULL; at most one open row may exist per car and per driver.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Index, text
from sqlalchemy.sql import func
from fleetman.app.db.session import Base


class Assignment(Base):
    """
    Assignment model.

    Rows are only ever inserted (open) and closed once by setting
    unassigned_at / unassigned_by. They are never deleted.
    """
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    car_id = Column(Integer, ForeignKey('cars.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey('users.id'), nullable=False)

    # Lifecycle
    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    unassigned_at = Column(DateTime(timezone=True), nullable=True)
    unassigned_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    # Only one open assignment per car and per driver
    __table_args__ = (
        Index('ix_assignments_open_car', 'car_id', unique=True,
              postgresql_where=text('unassigned_at IS NULL'),
              sqlite_where=text('unassigned_at IS NULL')),
        Index('ix_assignments_open_driver', 'driver_id', unique=True,
              postgresql_where=text('unassigned_at IS NULL'),
              sqlite_where=text('unassigned_at IS NULL')),
    )

    @property
    def is_open(self) -> bool:
        return self.unassigned_at is None

    def __repr__(self):
        return f"<Assignment(id={self.id}, car_id={self.car_id}, driver_id={self.driver_id}, open={self.is_open})>"
