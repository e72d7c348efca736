"""
Evidence library — /api/v1/evidence
"""
import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.control import Control
from opengrc.models.evidence import Evidence, EvidenceControl
from opengrc.schemas.asset import LinkedControlOut
from opengrc.schemas.common import BatchResult, ControlIds, DeletedOut
from opengrc.schemas.evidence import (
    EVIDENCE_SOURCE, EVIDENCE_TYPE,
    EvidenceCreate, EvidenceOut, EvidenceStats, EvidenceUpdate,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/evidence", tags=["Evidence"])

EXPIRY_WINDOW_DAYS = 30


async def _get_evidence(s: AsyncSession, evidence_id: int) -> Evidence:
    e = await s.get(Evidence, evidence_id)
    if not e:
        raise HTTPException(404, "Evidence not found")
    return e


def _check_validity(valid_from: datetime | None, valid_until: datetime | None) -> None:
    if valid_from and valid_until and valid_from > valid_until:
        raise HTTPException(400, "valid_from must be before valid_until")


def _is_expired(e: Evidence, now: datetime | None = None) -> bool:
    return e.valid_until is not None and e.valid_until < (now or datetime.utcnow())


async def _linked_controls(s: AsyncSession, evidence_id: int) -> list[LinkedControlOut]:
    q = (
        select(Control)
        .join(EvidenceControl, EvidenceControl.control_id == Control.id)
        .where(EvidenceControl.evidence_id == evidence_id)
        .order_by(Control.code)
    )
    return [
        LinkedControlOut(id=c.id, code=c.code, name=c.name, status=c.status)
        for c in (await s.execute(q)).scalars().all()
    ]


def _evidence_out(e: Evidence, linked: list[LinkedControlOut] | None = None, count: int | None = None) -> EvidenceOut:
    out = EvidenceOut.model_validate(e)
    out.is_expired = _is_expired(e)
    out.linked_controls = linked or []
    out.linked_control_count = count if count is not None else len(out.linked_controls)
    return out


# ═══════════════════ STATS (before /{id}) ═══════════════════

@router.get("/stats", response_model=EvidenceStats, summary="Evidence summary counts")
async def evidence_stats(s: AsyncSession = Depends(get_session)):
    items = (await s.execute(select(Evidence))).scalars().all()
    now = datetime.utcnow()
    horizon = now + timedelta(days=EXPIRY_WINDOW_DAYS)

    by_type: dict[str, int] = {}
    by_source: dict[str, int] = {}
    for e in items:
        by_type[e.evidence_type] = by_type.get(e.evidence_type, 0) + 1
        by_source[e.source] = by_source.get(e.source, 0) + 1

    return EvidenceStats(
        total=len(items),
        by_type=by_type,
        by_source=by_source,
        expiring_soon=sum(1 for e in items if e.valid_until and now < e.valid_until <= horizon),
        expired=sum(1 for e in items if _is_expired(e, now)),
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[EvidenceOut], summary="List evidence")
async def list_evidence(
    search: str | None = Query(None),
    evidence_type: str | None = Query(None, pattern=EVIDENCE_TYPE),
    source: str | None = Query(None, pattern=EVIDENCE_SOURCE),
    control_id: int | None = Query(None),
    expired: bool | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Evidence)
    if search:
        term = f"%{search}%"
        q = q.where(or_(Evidence.title.ilike(term), Evidence.description.ilike(term)))
    if evidence_type:
        q = q.where(Evidence.evidence_type == evidence_type)
    if source:
        q = q.where(Evidence.source == source)
    if control_id is not None:
        q = q.where(Evidence.id.in_(
            select(EvidenceControl.evidence_id).where(EvidenceControl.control_id == control_id)
        ))
    if expired is not None:
        now = datetime.utcnow()
        if expired:
            q = q.where(Evidence.valid_until.is_not(None), Evidence.valid_until < now)
        else:
            q = q.where(or_(Evidence.valid_until.is_(None), Evidence.valid_until >= now))
    q = q.order_by(Evidence.collected_at.desc(), Evidence.id.desc()).limit(limit).offset(offset)
    items = (await s.execute(q)).scalars().all()

    counts: dict[int, int] = {}
    if items:
        counts = dict((await s.execute(
            select(EvidenceControl.evidence_id, func.count())
            .where(EvidenceControl.evidence_id.in_([e.id for e in items]))
            .group_by(EvidenceControl.evidence_id)
        )).all())
    return [_evidence_out(e, count=counts.get(e.id, 0)) for e in items]


@router.get("/{evidence_id}", response_model=EvidenceOut, summary="Evidence details")
async def get_evidence(evidence_id: int, s: AsyncSession = Depends(get_session)):
    e = await _get_evidence(s, evidence_id)
    return _evidence_out(e, await _linked_controls(s, evidence_id))


@router.post("", response_model=EvidenceOut, status_code=201, summary="Register evidence")
async def create_evidence(body: EvidenceCreate, s: AsyncSession = Depends(get_session)):
    _check_validity(body.valid_from, body.valid_until)
    data = body.model_dump()
    if data["collected_at"] is None:
        data["collected_at"] = datetime.utcnow()
    e = Evidence(**data)
    s.add(e)
    await s.commit()
    await s.refresh(e)
    log.info("Created evidence %s (%s)", e.id, e.title)
    return _evidence_out(e)


@router.put("/{evidence_id}", response_model=EvidenceOut, summary="Update evidence")
async def update_evidence(evidence_id: int, body: EvidenceUpdate, s: AsyncSession = Depends(get_session)):
    e = await _get_evidence(s, evidence_id)
    data = body.model_dump(exclude_unset=True)
    _check_validity(data.get("valid_from", e.valid_from), data.get("valid_until", e.valid_until))
    for k, val in data.items():
        setattr(e, k, val)
    await s.commit()
    await s.refresh(e)
    return _evidence_out(e, await _linked_controls(s, evidence_id))


@router.delete("/{evidence_id}", response_model=DeletedOut, summary="Delete evidence")
async def delete_evidence(evidence_id: int, s: AsyncSession = Depends(get_session)):
    e = await _get_evidence(s, evidence_id)
    await s.execute(delete(EvidenceControl).where(EvidenceControl.evidence_id == evidence_id))
    await s.delete(e)
    await s.commit()
    return DeletedOut(id=evidence_id)


# ═══════════════════ LINKED CONTROLS ═══════════════════

@router.post("/{evidence_id}/controls", response_model=BatchResult, summary="Link evidence to controls")
async def link_controls(evidence_id: int, body: ControlIds, s: AsyncSession = Depends(get_session)):
    await _get_evidence(s, evidence_id)
    wanted = set(body.control_ids)
    found = set((await s.execute(select(Control.id).where(Control.id.in_(wanted)))).scalars().all())
    missing = wanted - found
    if missing:
        raise HTTPException(404, f"Controls not found: {sorted(missing)}")

    existing = set((await s.execute(
        select(EvidenceControl.control_id).where(EvidenceControl.evidence_id == evidence_id)
    )).scalars().all())
    added = 0
    for cid in body.control_ids:
        if cid in existing:
            continue
        s.add(EvidenceControl(evidence_id=evidence_id, control_id=cid))
        existing.add(cid)
        added += 1
    await s.commit()
    log.info("Linked %d controls to evidence %s", added, evidence_id)
    return BatchResult(added=added)


@router.delete("/{evidence_id}/controls", response_model=BatchResult, summary="Unlink evidence from controls")
async def unlink_controls(evidence_id: int, body: ControlIds, s: AsyncSession = Depends(get_session)):
    await _get_evidence(s, evidence_id)
    result = await s.execute(
        delete(EvidenceControl).where(
            EvidenceControl.evidence_id == evidence_id,
            EvidenceControl.control_id.in_(body.control_ids),
        )
    )
    await s.commit()
    return BatchResult(removed=result.rowcount or 0)
