"""
Internal controls module — /api/v1/controls
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.asset import Asset, AssetControl
from opengrc.models.control import Control, ControlRequirementMapping
from opengrc.models.framework import Framework, FrameworkRequirement
from opengrc.models.risk import RiskControl
from opengrc.schemas.common import BatchResult, DeletedOut, RequirementIds
from opengrc.schemas.control import (
    CONTROL_STATUS, CONTROL_TYPE, FREQUENCY,
    ControlCreate, ControlOut, ControlStats, ControlUpdate,
    LinkedAssetOut, MappedRequirementOut,
)

router = APIRouter(prefix="/api/v1/controls", tags=["Controls"])


async def _get_control(s: AsyncSession, control_id: int) -> Control:
    c = await s.get(Control, control_id)
    if not c:
        raise HTTPException(404, "Control not found")
    return c


async def _ensure_code_free(s: AsyncSession, code: str, exclude_id: int | None = None) -> None:
    q = select(Control.id).where(Control.code == code)
    if exclude_id is not None:
        q = q.where(Control.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, f"Control code '{code}' already exists")


async def _requirement_counts(s: AsyncSession, control_ids: list[int]) -> dict[int, int]:
    if not control_ids:
        return {}
    q = (
        select(ControlRequirementMapping.control_id, func.count())
        .where(ControlRequirementMapping.control_id.in_(control_ids))
        .group_by(ControlRequirementMapping.control_id)
    )
    return dict((await s.execute(q)).all())


async def _control_out(s: AsyncSession, c: Control, detail: bool = True) -> ControlOut:
    out = ControlOut.model_validate(c)
    if not detail:
        return out

    req_q = (
        select(FrameworkRequirement, Framework.name)
        .join(ControlRequirementMapping, ControlRequirementMapping.requirement_id == FrameworkRequirement.id)
        .join(Framework, Framework.id == FrameworkRequirement.framework_id)
        .where(ControlRequirementMapping.control_id == c.id)
        .order_by(Framework.name, FrameworkRequirement.code)
    )
    out.mapped_requirements = [
        MappedRequirementOut(
            id=r.id, framework_id=r.framework_id, framework_name=fw_name,
            code=r.code, name=r.name,
        )
        for r, fw_name in (await s.execute(req_q)).all()
    ]
    out.requirement_count = len(out.mapped_requirements)

    asset_q = (
        select(Asset)
        .join(AssetControl, AssetControl.asset_id == Asset.id)
        .where(AssetControl.control_id == c.id)
        .order_by(Asset.name)
    )
    out.linked_assets = [
        LinkedAssetOut(id=a.id, name=a.name, asset_type=a.asset_type)
        for a in (await s.execute(asset_q)).scalars().all()
    ]
    return out


# ═══════════════════ STATS (before /{id}) ═══════════════════

@router.get("/stats", response_model=ControlStats, summary="Control implementation summary")
async def control_stats(s: AsyncSession = Depends(get_session)):
    rows = (await s.execute(select(Control.status, func.count()).group_by(Control.status))).all()
    counts = dict(rows)
    total = sum(counts.values())
    implemented = counts.get("implemented", 0)
    not_applicable = counts.get("not_applicable", 0)
    applicable = total - not_applicable
    pct = round(implemented / applicable * 100, 1) if applicable > 0 else 0.0
    return ControlStats(
        total=total,
        implemented=implemented,
        in_progress=counts.get("in_progress", 0),
        not_implemented=counts.get("not_implemented", 0),
        not_applicable=not_applicable,
        implementation_percentage=pct,
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[ControlOut], summary="List controls")
async def list_controls(
    search: str | None = Query(None),
    status: str | None = Query(None, pattern=CONTROL_STATUS),
    control_type: str | None = Query(None, pattern=CONTROL_TYPE),
    frequency: str | None = Query(None, pattern=FREQUENCY),
    framework_id: int | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Control)
    if search:
        term = f"%{search}%"
        q = q.where(or_(
            Control.code.ilike(term), Control.name.ilike(term), Control.description.ilike(term),
        ))
    if status:
        q = q.where(Control.status == status)
    if control_type:
        q = q.where(Control.control_type == control_type)
    if frequency:
        q = q.where(Control.frequency == frequency)
    if framework_id is not None:
        mapped = (
            select(ControlRequirementMapping.control_id)
            .join(FrameworkRequirement, FrameworkRequirement.id == ControlRequirementMapping.requirement_id)
            .where(FrameworkRequirement.framework_id == framework_id)
        )
        q = q.where(Control.id.in_(mapped))
    q = q.order_by(Control.code).limit(limit).offset(offset)
    controls = (await s.execute(q)).scalars().all()
    counts = await _requirement_counts(s, [c.id for c in controls])
    result = []
    for c in controls:
        out = await _control_out(s, c, detail=False)
        out.requirement_count = counts.get(c.id, 0)
        result.append(out)
    return result


@router.get("/{control_id}", response_model=ControlOut, summary="Control details")
async def get_control(control_id: int, s: AsyncSession = Depends(get_session)):
    c = await _get_control(s, control_id)
    return await _control_out(s, c)


@router.post("", response_model=ControlOut, status_code=201, summary="Create control")
async def create_control(body: ControlCreate, s: AsyncSession = Depends(get_session)):
    await _ensure_code_free(s, body.code)
    c = Control(**body.model_dump())
    s.add(c)
    await s.commit()
    await s.refresh(c)
    return await _control_out(s, c)


@router.put("/{control_id}", response_model=ControlOut, summary="Update control")
async def update_control(control_id: int, body: ControlUpdate, s: AsyncSession = Depends(get_session)):
    c = await _get_control(s, control_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("code"):
        await _ensure_code_free(s, data["code"], exclude_id=control_id)
    for k, val in data.items():
        setattr(c, k, val)
    await s.commit()
    await s.refresh(c)
    return await _control_out(s, c)


@router.delete("/{control_id}", response_model=DeletedOut, summary="Delete control")
async def delete_control(control_id: int, s: AsyncSession = Depends(get_session)):
    c = await _get_control(s, control_id)
    await s.execute(delete(ControlRequirementMapping).where(ControlRequirementMapping.control_id == control_id))
    await s.execute(delete(AssetControl).where(AssetControl.control_id == control_id))
    await s.execute(delete(RiskControl).where(RiskControl.control_id == control_id))
    await s.delete(c)
    await s.commit()
    return DeletedOut(id=control_id)


# ═══════════════════ REQUIREMENT MAPPINGS ═══════════════════

@router.post("/{control_id}/requirements", response_model=BatchResult, summary="Map requirements to control")
async def map_requirements(control_id: int, body: RequirementIds, s: AsyncSession = Depends(get_session)):
    await _get_control(s, control_id)
    wanted = set(body.requirement_ids)
    found = set((await s.execute(
        select(FrameworkRequirement.id).where(FrameworkRequirement.id.in_(wanted))
    )).scalars().all())
    missing = wanted - found
    if missing:
        raise HTTPException(404, f"Requirements not found: {sorted(missing)}")

    existing = set((await s.execute(
        select(ControlRequirementMapping.requirement_id)
        .where(ControlRequirementMapping.control_id == control_id)
    )).scalars().all())
    added = 0
    for rid in body.requirement_ids:
        if rid in existing:
            continue
        s.add(ControlRequirementMapping(control_id=control_id, requirement_id=rid))
        existing.add(rid)
        added += 1
    await s.commit()
    return BatchResult(added=added)


@router.delete("/{control_id}/requirements", response_model=BatchResult, summary="Unmap requirements from control")
async def unmap_requirements(control_id: int, body: RequirementIds, s: AsyncSession = Depends(get_session)):
    await _get_control(s, control_id)
    result = await s.execute(
        delete(ControlRequirementMapping).where(
            ControlRequirementMapping.control_id == control_id,
            ControlRequirementMapping.requirement_id.in_(body.requirement_ids),
        )
    )
    await s.commit()
    return BatchResult(removed=result.rowcount or 0)
