"""
Audit trail viewer — /api/v1/audit-log
Read-only access to the change log written by the ORM listeners.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.audit import AUDIT_ACTIONS, AuditLog
from opengrc.schemas.audit import AuditLogOut, EntityHistoryOut

router = APIRouter(prefix="/api/v1/audit-log", tags=["Audit Trail"])


@router.get("", response_model=list[AuditLogOut], summary="Browse change log")
async def list_audit_logs(
    module: str | None = Query(None, description="vendors, controls, frameworks, ..."),
    entity_type: str | None = Query(None, description="Table name, e.g. vendors"),
    entity_id: int | None = Query(None),
    action: str | None = Query(None, description="create / update / delete"),
    user_id: str | None = Query(None, description="Value of the X-User-Id header"),
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    if action and action not in AUDIT_ACTIONS:
        raise HTTPException(400, f"Unknown audit action: {action}")
    filters = [
        (AuditLog.module, module),
        (AuditLog.entity_type, entity_type),
        (AuditLog.entity_id, entity_id),
        (AuditLog.action, action),
        (AuditLog.user_id, user_id),
    ]
    q = select(AuditLog).where(*(col == val for col, val in filters if val not in (None, "")))
    if since is not None:
        q = q.where(AuditLog.created_at >= since)
    q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit)
    return (await s.execute(q)).scalars().all()


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=EntityHistoryOut,
    summary="Change history of one entity",
)
async def entity_history(entity_type: str, entity_id: int, s: AsyncSession = Depends(get_session)):
    q = (
        select(AuditLog)
        .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.created_at, AuditLog.id)
    )
    entries = (await s.execute(q)).scalars().all()
    if not entries:
        raise HTTPException(404, f"No audit history for {entity_type} #{entity_id}")

    created = next((e for e in entries if e.action == "create"), None)
    last = entries[-1]
    return EntityHistoryOut(
        entity_type=entity_type,
        entity_id=entity_id,
        created_by=created.user_id if created else None,
        last_changed_by=last.user_id,
        last_changed_at=last.created_at,
        deleted=any(e.action == "delete" for e in entries),
        entries=[AuditLogOut.model_validate(e) for e in entries],
    )
