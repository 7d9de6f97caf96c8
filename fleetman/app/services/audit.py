"""
Audit logging service for tracking security events and fleet changes.

Provides centralized logging for compliance and security monitoring.
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func
from fleetman.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"

    USER_REGISTERED = "USER_REGISTERED"
    USER_CREATED = "USER_CREATED"
    USER_DELETED = "USER_DELETED"

    CAR_CREATED = "CAR_CREATED"
    CAR_DEACTIVATED = "CAR_DEACTIVATED"

    DRIVER_CREATED = "DRIVER_CREATED"
    DRIVER_DEACTIVATED = "DRIVER_DEACTIVATED"

    ASSIGNMENT_CREATED = "ASSIGNMENT_CREATED"
    ASSIGNMENT_ENDED = "ASSIGNMENT_ENDED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an event to the audit log.

    Runs in its own commit, after the change it describes has been
    committed.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        target_type: Kind of record acted upon ("car", "driver", "user", "assignment")
        target_id: ID of that record
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    action: Optional[str] = None,
    limit: int = 100
) -> tuple[List[AuditLog], int]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        (entries most recent first, total matching count)
    """
    query = select(AuditLog)
    count_query = select(func.count(AuditLog.id))

    if action:
        query = query.where(AuditLog.action == action)
        count_query = count_query.where(AuditLog.action == action)

    query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    total = (await db.execute(count_query)).scalar() or 0
    return list(result.scalars().all()), total
