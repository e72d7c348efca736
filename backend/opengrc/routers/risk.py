"""
Risk register module — /api/v1/risks

Scores are likelihood x impact on 1..5 scales (1..25):
risk_level  critical >=15, high >=10, medium >=5, low <5
"""
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.control import Control
from opengrc.models.risk import Risk, RiskControl
from opengrc.schemas.asset import LinkedControlOut
from opengrc.schemas.common import BatchResult, ControlIds, DeletedOut
from opengrc.schemas.risk import (
    RISK_CATEGORY, RISK_SOURCE, RISK_STATUS,
    HeatmapCell, RiskCreate, RiskHeatmap, RiskOut, RiskStats, RiskUpdate,
)

router = APIRouter(prefix="/api/v1/risks", tags=["Risks"])


def risk_level(score: int | None) -> str:
    if score is None:
        return "unknown"
    if score >= 15:
        return "critical"
    if score >= 10:
        return "high"
    if score >= 5:
        return "medium"
    return "low"


def _product(a: int | None, b: int | None) -> int | None:
    if a is None or b is None:
        return None
    return a * b


def _recompute_scores(r: Risk) -> None:
    r.inherent_score = _product(r.likelihood, r.impact)
    r.residual_score = _product(r.residual_likelihood, r.residual_impact)


async def _get_risk(s: AsyncSession, risk_id: int) -> Risk:
    r = await s.get(Risk, risk_id)
    if not r:
        raise HTTPException(404, "Risk not found")
    return r


async def _ensure_code_free(s: AsyncSession, code: str, exclude_id: int | None = None) -> None:
    q = select(Risk.id).where(Risk.code == code)
    if exclude_id is not None:
        q = q.where(Risk.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, f"Risk code '{code}' already exists")


async def _risk_out(s: AsyncSession, r: Risk, detail: bool = True, count: int = 0) -> RiskOut:
    linked: list[LinkedControlOut] = []
    if detail:
        q = (
            select(Control)
            .join(RiskControl, RiskControl.control_id == Control.id)
            .where(RiskControl.risk_id == r.id)
            .order_by(Control.code)
        )
        linked = [
            LinkedControlOut(id=c.id, code=c.code, name=c.name, status=c.status)
            for c in (await s.execute(q)).scalars().all()
        ]
        count = len(linked)
    return RiskOut(
        id=r.id, code=r.code, title=r.title, description=r.description,
        category=r.category, source=r.source,
        likelihood=r.likelihood, impact=r.impact, inherent_score=r.inherent_score,
        residual_likelihood=r.residual_likelihood, residual_impact=r.residual_impact,
        residual_score=r.residual_score,
        risk_level=risk_level(r.inherent_score),
        status=r.status, owner=r.owner, treatment_plan=r.treatment_plan,
        identified_at=r.identified_at, review_date=r.review_date,
        linked_control_count=count, linked_controls=linked,
        created_at=r.created_at, updated_at=r.updated_at,
    )


# ═══════════════════ STATS & HEATMAP (before /{id}) ═══════════════════

@router.get("/stats", response_model=RiskStats, summary="Risk register summary")
async def risk_stats(s: AsyncSession = Depends(get_session)):
    risks = (await s.execute(select(Risk))).scalars().all()
    today = date.today()

    by_status: dict[str, int] = {}
    by_category: dict[str, int] = {}
    for r in risks:
        by_status[r.status] = by_status.get(r.status, 0) + 1
        cat = r.category or "uncategorized"
        by_category[cat] = by_category.get(cat, 0) + 1

    inherent = [r.inherent_score for r in risks if r.inherent_score is not None]
    residual = [r.residual_score for r in risks if r.residual_score is not None]
    return RiskStats(
        total=len(risks),
        by_status=by_status,
        by_category=by_category,
        high_risks=sum(1 for x in inherent if x >= 15),
        medium_risks=sum(1 for x in inherent if 5 <= x < 15),
        low_risks=sum(1 for x in inherent if x < 5),
        needs_review=sum(1 for r in risks if r.review_date and r.review_date <= today),
        average_inherent_score=round(sum(inherent) / len(inherent), 1) if inherent else 0.0,
        average_residual_score=round(sum(residual) / len(residual), 1) if residual else 0.0,
    )


@router.get("/heatmap", response_model=RiskHeatmap, summary="Likelihood x impact heatmap")
async def risk_heatmap(s: AsyncSession = Depends(get_session)):
    total = (await s.execute(select(func.count(Risk.id)))).scalar() or 0
    q = (
        select(Risk.likelihood, Risk.impact, func.count())
        .where(Risk.likelihood.is_not(None), Risk.impact.is_not(None))
        .group_by(Risk.likelihood, Risk.impact)
    )
    counts = {(lk, im): n for lk, im, n in (await s.execute(q)).all()}
    cells = [
        HeatmapCell(likelihood=lk, impact=im, count=counts.get((lk, im), 0))
        for lk in range(1, 6)
        for im in range(1, 6)
    ]
    return RiskHeatmap(cells=cells, total_risks=total, risks_with_scores=sum(counts.values()))


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[RiskOut], summary="List risks")
async def list_risks(
    search: str | None = Query(None),
    status: str | None = Query(None, pattern=RISK_STATUS),
    category: str | None = Query(None, pattern=RISK_CATEGORY),
    source: str | None = Query(None, pattern=RISK_SOURCE),
    min_score: int | None = Query(None, ge=1, le=25),
    max_score: int | None = Query(None, ge=1, le=25),
    needs_review: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Risk)
    if search:
        term = f"%{search}%"
        q = q.where(or_(Risk.code.ilike(term), Risk.title.ilike(term), Risk.description.ilike(term)))
    if status:
        q = q.where(Risk.status == status)
    if category:
        q = q.where(Risk.category == category)
    if source:
        q = q.where(Risk.source == source)
    if min_score is not None:
        q = q.where(Risk.inherent_score >= min_score)
    if max_score is not None:
        q = q.where(Risk.inherent_score <= max_score)
    if needs_review:
        q = q.where(Risk.review_date.is_not(None), Risk.review_date <= date.today())
    q = q.order_by(
        Risk.inherent_score.is_(None), Risk.inherent_score.desc(), Risk.updated_at.desc(),
    ).limit(limit).offset(offset)
    risks = (await s.execute(q)).scalars().all()

    counts: dict[int, int] = {}
    if risks:
        counts = dict((await s.execute(
            select(RiskControl.risk_id, func.count())
            .where(RiskControl.risk_id.in_([r.id for r in risks]))
            .group_by(RiskControl.risk_id)
        )).all())
    return [await _risk_out(s, r, detail=False, count=counts.get(r.id, 0)) for r in risks]


@router.get("/{risk_id}", response_model=RiskOut, summary="Risk details")
async def get_risk(risk_id: int, s: AsyncSession = Depends(get_session)):
    return await _risk_out(s, await _get_risk(s, risk_id))


@router.post("", response_model=RiskOut, status_code=201, summary="Register risk")
async def create_risk(body: RiskCreate, s: AsyncSession = Depends(get_session)):
    await _ensure_code_free(s, body.code)
    r = Risk(**body.model_dump())
    _recompute_scores(r)
    s.add(r)
    await s.commit()
    await s.refresh(r)
    return await _risk_out(s, r)


@router.put("/{risk_id}", response_model=RiskOut, summary="Update risk")
async def update_risk(risk_id: int, body: RiskUpdate, s: AsyncSession = Depends(get_session)):
    r = await _get_risk(s, risk_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("code"):
        await _ensure_code_free(s, data["code"], exclude_id=risk_id)
    for k, val in data.items():
        setattr(r, k, val)
    _recompute_scores(r)
    await s.commit()
    await s.refresh(r)
    return await _risk_out(s, r)


@router.delete("/{risk_id}", response_model=DeletedOut, summary="Delete risk")
async def delete_risk(risk_id: int, s: AsyncSession = Depends(get_session)):
    r = await _get_risk(s, risk_id)
    await s.execute(delete(RiskControl).where(RiskControl.risk_id == risk_id))
    await s.delete(r)
    await s.commit()
    return DeletedOut(id=risk_id)


# ═══════════════════ MITIGATING CONTROLS ═══════════════════

@router.post("/{risk_id}/controls", response_model=BatchResult, summary="Link mitigating controls")
async def link_controls(risk_id: int, body: ControlIds, s: AsyncSession = Depends(get_session)):
    await _get_risk(s, risk_id)
    wanted = set(body.control_ids)
    found = set((await s.execute(select(Control.id).where(Control.id.in_(wanted)))).scalars().all())
    missing = wanted - found
    if missing:
        raise HTTPException(404, f"Controls not found: {sorted(missing)}")

    existing = set((await s.execute(
        select(RiskControl.control_id).where(RiskControl.risk_id == risk_id)
    )).scalars().all())
    added = 0
    for cid in body.control_ids:
        if cid in existing:
            continue
        s.add(RiskControl(risk_id=risk_id, control_id=cid, effectiveness=body.effectiveness))
        existing.add(cid)
        added += 1
    await s.commit()
    return BatchResult(added=added)


@router.delete("/{risk_id}/controls", response_model=BatchResult, summary="Unlink mitigating controls")
async def unlink_controls(risk_id: int, body: ControlIds, s: AsyncSession = Depends(get_session)):
    await _get_risk(s, risk_id)
    result = await s.execute(
        delete(RiskControl).where(
            RiskControl.risk_id == risk_id,
            RiskControl.control_id.in_(body.control_ids),
        )
    )
    await s.commit()
    return BatchResult(removed=result.rowcount or 0)
