"""
Audit trail endpoint (admin only).
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleetman.app.db.session import get_db
from fleetman.app.schemas.auth import CurrentUser
from fleetman.app.schemas.audit import AuditTrailResponse, AuditLogResponse
from fleetman.app.core.guards import require_admin
from fleetman.app.services.audit import get_audit_trail

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("", response_model=AuditTrailResponse)
async def get_audit_logs(
    action: Optional[str] = Query(None, description="Filter by action, e.g. ASSIGNMENT_CREATED"),
    limit: int = Query(100, ge=1, le=500),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Recent audit entries, newest first."""
    logs, total = await get_audit_trail(db, action=action, limit=limit)
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total
    )
