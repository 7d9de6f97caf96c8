"""
Audit Log Database Model.

Tracks logins, catalog changes and assignment changes.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from fleetman.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - LOGIN_SUCCESS / LOGIN_FAILED
    - USER_REGISTERED / USER_CREATED / USER_DELETED
    - CAR_CREATED / CAR_DEACTIVATED
    - DRIVER_CREATED / DRIVER_DEACTIVATED
    - ASSIGNMENT_CREATED / ASSIGNMENT_ENDED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for anonymous attempts)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What it was performed on
    target_type = Column(String(50), nullable=True)
    target_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, target={self.target_type}:{self.target_id})>"
