"""
Audit engagements — /api/v1/audits
"""
import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.compliance_audit import Audit, AuditFinding, AuditRequest
from opengrc.models.framework import Framework
from opengrc.schemas.common import DeletedOut
from opengrc.schemas.compliance_audit import (
    AUDIT_STATUS, AUDIT_TYPE,
    AuditCreate, AuditFindingCreate, AuditFindingOut, AuditFindingUpdate,
    AuditOut, AuditRequestCreate, AuditRequestOut, AuditRequestUpdate,
    AuditStats, AuditUpdate,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/audits", tags=["Audits"])

ACTIVE_STATUSES = ("in_progress", "fieldwork", "reporting")


async def _get_audit(s: AsyncSession, audit_id: int) -> Audit:
    a = await s.get(Audit, audit_id)
    if not a:
        raise HTTPException(404, "Audit not found")
    return a


async def _check_framework(s: AsyncSession, framework_id: int | None) -> None:
    if framework_id is not None and not await s.get(Framework, framework_id):
        raise HTTPException(404, "Framework not found")


def _check_period(start: date | None, end: date | None) -> None:
    if start and end and start > end:
        raise HTTPException(400, "Period start must be before period end")


def request_overdue(r: AuditRequest, now: datetime | None = None) -> bool:
    return r.status == "open" and r.due_at is not None and r.due_at < (now or datetime.utcnow())


def finding_overdue(f: AuditFinding, today: date | None = None) -> bool:
    return f.status != "closed" and f.remediation_due is not None and f.remediation_due < (today or date.today())


async def _child_counts(s: AsyncSession, model, audit_ids: list[int]) -> dict[int, tuple[int, int]]:
    """audit_id -> (total, open) for requests or findings."""
    if not audit_ids:
        return {}
    q = (
        select(model.audit_id, model.status, func.count())
        .where(model.audit_id.in_(audit_ids))
        .group_by(model.audit_id, model.status)
    )
    out: dict[int, tuple[int, int]] = {}
    for audit_id, status, n in (await s.execute(q)).all():
        total, open_ = out.get(audit_id, (0, 0))
        out[audit_id] = (total + n, open_ + (n if status == "open" else 0))
    return out


async def _audit_outs(s: AsyncSession, audits: list[Audit]) -> list[AuditOut]:
    ids = [a.id for a in audits]
    requests = await _child_counts(s, AuditRequest, ids)
    findings = await _child_counts(s, AuditFinding, ids)
    fw_ids = {a.framework_id for a in audits if a.framework_id is not None}
    fw_names: dict[int, str] = {}
    if fw_ids:
        fw_names = dict((await s.execute(
            select(Framework.id, Framework.name).where(Framework.id.in_(fw_ids))
        )).all())

    outs = []
    for a in audits:
        out = AuditOut.model_validate(a)
        out.framework_name = fw_names.get(a.framework_id)
        out.request_count, out.open_requests = requests.get(a.id, (0, 0))
        out.finding_count, out.open_findings = findings.get(a.id, (0, 0))
        outs.append(out)
    return outs


async def _audit_out(s: AsyncSession, a: Audit) -> AuditOut:
    return (await _audit_outs(s, [a]))[0]


def _request_out(r: AuditRequest) -> AuditRequestOut:
    out = AuditRequestOut.model_validate(r)
    out.is_overdue = request_overdue(r)
    return out


def _finding_out(f: AuditFinding) -> AuditFindingOut:
    out = AuditFindingOut.model_validate(f)
    out.remediation_overdue = finding_overdue(f)
    return out


# ═══════════════════ STATS (before /{id}) ═══════════════════

@router.get("/stats", response_model=AuditStats, summary="Audit programme summary")
async def audit_stats(s: AsyncSession = Depends(get_session)):
    audits = (await s.execute(select(Audit))).scalars().all()
    by_type: dict[str, int] = {}
    for a in audits:
        key = a.audit_type or "unspecified"
        by_type[key] = by_type.get(key, 0) + 1

    open_findings = (await s.execute(
        select(func.count()).select_from(AuditFinding).where(AuditFinding.status == "open")
    )).scalar_one()
    overdue_requests = (await s.execute(
        select(func.count()).select_from(AuditRequest).where(
            AuditRequest.status == "open",
            AuditRequest.due_at.is_not(None),
            AuditRequest.due_at < datetime.utcnow(),
        )
    )).scalar_one()

    return AuditStats(
        total=len(audits),
        in_progress=sum(1 for a in audits if a.status in ACTIVE_STATUSES),
        completed=sum(1 for a in audits if a.status == "completed"),
        by_type=by_type,
        open_findings=open_findings,
        overdue_requests=overdue_requests,
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[AuditOut], summary="List audits")
async def list_audits(
    search: str | None = Query(None),
    status: str | None = Query(None, pattern=AUDIT_STATUS),
    audit_type: str | None = Query(None, pattern=AUDIT_TYPE),
    framework_id: int | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Audit)
    if search:
        term = f"%{search}%"
        q = q.where(or_(Audit.name.ilike(term), Audit.auditor_firm.ilike(term)))
    if status:
        q = q.where(Audit.status == status)
    if audit_type:
        q = q.where(Audit.audit_type == audit_type)
    if framework_id is not None:
        q = q.where(Audit.framework_id == framework_id)
    q = q.order_by(Audit.created_at.desc(), Audit.id.desc()).limit(limit).offset(offset)
    audits = list((await s.execute(q)).scalars().all())
    return await _audit_outs(s, audits)


@router.get("/{audit_id}", response_model=AuditOut, summary="Audit details")
async def get_audit(audit_id: int, s: AsyncSession = Depends(get_session)):
    a = await _get_audit(s, audit_id)
    return await _audit_out(s, a)


@router.post("", response_model=AuditOut, status_code=201, summary="Create audit")
async def create_audit(body: AuditCreate, s: AsyncSession = Depends(get_session)):
    _check_period(body.period_start, body.period_end)
    await _check_framework(s, body.framework_id)
    a = Audit(**body.model_dump())
    s.add(a)
    await s.commit()
    await s.refresh(a)
    log.info("Created audit %s (%s)", a.id, a.name)
    return await _audit_out(s, a)


@router.put("/{audit_id}", response_model=AuditOut, summary="Update audit")
async def update_audit(audit_id: int, body: AuditUpdate, s: AsyncSession = Depends(get_session)):
    a = await _get_audit(s, audit_id)
    data = body.model_dump(exclude_unset=True)
    _check_period(data.get("period_start", a.period_start), data.get("period_end", a.period_end))
    if "framework_id" in data:
        await _check_framework(s, data["framework_id"])
    for k, val in data.items():
        setattr(a, k, val)
    await s.commit()
    await s.refresh(a)
    return await _audit_out(s, a)


@router.delete("/{audit_id}", response_model=DeletedOut, summary="Delete audit")
async def delete_audit(audit_id: int, s: AsyncSession = Depends(get_session)):
    a = await _get_audit(s, audit_id)
    await s.execute(delete(AuditRequest).where(AuditRequest.audit_id == audit_id))
    await s.execute(delete(AuditFinding).where(AuditFinding.audit_id == audit_id))
    await s.delete(a)
    await s.commit()
    return DeletedOut(id=audit_id)


# ═══════════════════ REQUESTS ═══════════════════

async def _get_request(s: AsyncSession, audit_id: int, request_id: int) -> AuditRequest:
    r = await s.get(AuditRequest, request_id)
    if not r or r.audit_id != audit_id:
        raise HTTPException(404, "Audit request not found")
    return r


@router.get("/{audit_id}/requests", response_model=list[AuditRequestOut], summary="Auditor requests")
async def list_requests(audit_id: int, s: AsyncSession = Depends(get_session)):
    await _get_audit(s, audit_id)
    q = (
        select(AuditRequest)
        .where(AuditRequest.audit_id == audit_id)
        .order_by(AuditRequest.due_at.is_(None), AuditRequest.due_at, AuditRequest.created_at.desc())
    )
    return [_request_out(r) for r in (await s.execute(q)).scalars().all()]


@router.post("/{audit_id}/requests", response_model=AuditRequestOut, status_code=201, summary="Add auditor request")
async def create_request(audit_id: int, body: AuditRequestCreate, s: AsyncSession = Depends(get_session)):
    await _get_audit(s, audit_id)
    r = AuditRequest(audit_id=audit_id, **body.model_dump())
    s.add(r)
    await s.commit()
    await s.refresh(r)
    return _request_out(r)


@router.put("/{audit_id}/requests/{request_id}", response_model=AuditRequestOut, summary="Update auditor request")
async def update_request(
    audit_id: int, request_id: int, body: AuditRequestUpdate, s: AsyncSession = Depends(get_session),
):
    r = await _get_request(s, audit_id, request_id)
    for k, val in body.model_dump(exclude_unset=True).items():
        setattr(r, k, val)
    await s.commit()
    await s.refresh(r)
    return _request_out(r)


# ═══════════════════ FINDINGS ═══════════════════

async def _get_finding(s: AsyncSession, audit_id: int, finding_id: int) -> AuditFinding:
    f = await s.get(AuditFinding, finding_id)
    if not f or f.audit_id != audit_id:
        raise HTTPException(404, "Audit finding not found")
    return f


@router.get("/{audit_id}/findings", response_model=list[AuditFindingOut], summary="Audit findings")
async def list_findings(audit_id: int, s: AsyncSession = Depends(get_session)):
    await _get_audit(s, audit_id)
    q = (
        select(AuditFinding)
        .where(AuditFinding.audit_id == audit_id)
        .order_by(
            AuditFinding.remediation_due.is_(None), AuditFinding.remediation_due,
            AuditFinding.created_at.desc(),
        )
    )
    return [_finding_out(f) for f in (await s.execute(q)).scalars().all()]


@router.post("/{audit_id}/findings", response_model=AuditFindingOut, status_code=201, summary="Record finding")
async def create_finding(audit_id: int, body: AuditFindingCreate, s: AsyncSession = Depends(get_session)):
    await _get_audit(s, audit_id)
    f = AuditFinding(audit_id=audit_id, **body.model_dump())
    s.add(f)
    await s.commit()
    await s.refresh(f)
    log.info("Audit %s: finding %s recorded", audit_id, f.id)
    return _finding_out(f)


@router.put("/{audit_id}/findings/{finding_id}", response_model=AuditFindingOut, summary="Update finding")
async def update_finding(
    audit_id: int, finding_id: int, body: AuditFindingUpdate, s: AsyncSession = Depends(get_session),
):
    f = await _get_finding(s, audit_id, finding_id)
    for k, val in body.model_dump(exclude_unset=True).items():
        setattr(f, k, val)
    await s.commit()
    await s.refresh(f)
    return _finding_out(f)
