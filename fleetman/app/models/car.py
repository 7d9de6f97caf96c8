"""
Car database model.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from fleetman.app.db.session import Base


class Car(Base):
    """
    Car model.

    Cars are soft-deleted (is_active=False) so assignment history keeps
    pointing at a real row. The plate stays unique across inactive cars.
    """
    __tablename__ = "cars"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    license_plate = Column(String(20), unique=True, nullable=False, index=True)
    model = Column(String(50), nullable=False)

    # Status
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Car(id={self.id}, plate='{self.license_plate}', active={self.is_active})>"
