"""
Asset inventory module — /api/v1/assets
"""
from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.asset import Asset, AssetControl
from opengrc.models.control import Control
from opengrc.schemas.asset import (
    ASSET_STATUS, ASSET_TYPE, CLASSIFICATION, LIFECYCLE_STAGE,
    AssetCreate, AssetOut, AssetStats, AssetUpdate, LinkedControlOut,
)
from opengrc.schemas.common import BatchResult, ControlIds, DeletedOut

router = APIRouter(prefix="/api/v1/assets", tags=["Assets"])

WARRANTY_WINDOW_DAYS = 90


async def _get_asset(s: AsyncSession, asset_id: int) -> Asset:
    a = await s.get(Asset, asset_id)
    if not a:
        raise HTTPException(404, "Asset not found")
    return a


def _to_columns(data: dict) -> dict:
    # "metadata" is reserved on declarative classes; the attribute is metadata_json
    if "metadata" in data:
        data["metadata_json"] = data.pop("metadata")
    return data


async def _linked_controls(s: AsyncSession, asset_id: int) -> list[LinkedControlOut]:
    q = (
        select(Control)
        .join(AssetControl, AssetControl.control_id == Control.id)
        .where(AssetControl.asset_id == asset_id)
        .order_by(Control.code)
    )
    return [
        LinkedControlOut(id=c.id, code=c.code, name=c.name, status=c.status)
        for c in (await s.execute(q)).scalars().all()
    ]


def _asset_out(a: Asset, linked: list[LinkedControlOut] | None = None, count: int | None = None) -> AssetOut:
    linked = linked or []
    return AssetOut(
        id=a.id, name=a.name, description=a.description,
        asset_type=a.asset_type, category=a.category,
        classification=a.classification, status=a.status, owner=a.owner,
        location=a.location, ip_address=a.ip_address, mac_address=a.mac_address,
        purchase_date=a.purchase_date, warranty_until=a.warranty_until,
        metadata=a.metadata_json,
        lifecycle_stage=a.lifecycle_stage,
        commissioned_date=a.commissioned_date, decommission_date=a.decommission_date,
        last_maintenance_date=a.last_maintenance_date,
        next_maintenance_due=a.next_maintenance_due,
        maintenance_frequency=a.maintenance_frequency,
        end_of_life_date=a.end_of_life_date, end_of_support_date=a.end_of_support_date,
        integration_source=a.integration_source, external_id=a.external_id,
        last_synced_at=a.last_synced_at,
        linked_control_count=count if count is not None else len(linked),
        linked_controls=linked,
        created_at=a.created_at, updated_at=a.updated_at,
    )


# ═══════════════════ STATS (before /{id}) ═══════════════════

@router.get("/stats", response_model=AssetStats, summary="Asset inventory summary")
async def asset_stats(s: AsyncSession = Depends(get_session)):
    assets = (await s.execute(select(Asset))).scalars().all()
    today = date.today()
    horizon = today + timedelta(days=WARRANTY_WINDOW_DAYS)

    def _group(attr: str) -> dict[str, int]:
        out: dict[str, int] = {}
        for a in assets:
            key = getattr(a, attr) or "unspecified"
            out[key] = out.get(key, 0) + 1
        return out

    return AssetStats(
        total=len(assets),
        by_type=_group("asset_type"),
        by_classification=_group("classification"),
        by_status=_group("status"),
        by_lifecycle_stage=_group("lifecycle_stage"),
        warranty_expiring_soon=sum(
            1 for a in assets if a.warranty_until and today <= a.warranty_until <= horizon
        ),
        maintenance_due=sum(
            1 for a in assets if a.next_maintenance_due and a.next_maintenance_due <= today
        ),
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[AssetOut], summary="List assets")
async def list_assets(
    search: str | None = Query(None),
    asset_type: str | None = Query(None, pattern=ASSET_TYPE),
    category: str | None = Query(None),
    classification: str | None = Query(None, pattern=CLASSIFICATION),
    status: str | None = Query(None, pattern=ASSET_STATUS),
    lifecycle_stage: str | None = Query(None, pattern=LIFECYCLE_STAGE),
    integration_source: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Asset)
    if search:
        term = f"%{search}%"
        q = q.where(or_(
            Asset.name.ilike(term), Asset.description.ilike(term),
            Asset.ip_address.ilike(term), Asset.external_id.ilike(term),
        ))
    if asset_type:
        q = q.where(Asset.asset_type == asset_type)
    if category:
        q = q.where(Asset.category == category)
    if classification:
        q = q.where(Asset.classification == classification)
    if status:
        q = q.where(Asset.status == status)
    if lifecycle_stage:
        q = q.where(Asset.lifecycle_stage == lifecycle_stage)
    if integration_source:
        q = q.where(Asset.integration_source == integration_source)
    q = q.order_by(Asset.name).limit(limit).offset(offset)
    assets = (await s.execute(q)).scalars().all()

    counts: dict[int, int] = {}
    if assets:
        counts = dict((await s.execute(
            select(AssetControl.asset_id, func.count())
            .where(AssetControl.asset_id.in_([a.id for a in assets]))
            .group_by(AssetControl.asset_id)
        )).all())
    return [_asset_out(a, count=counts.get(a.id, 0)) for a in assets]


@router.get("/{asset_id}", response_model=AssetOut, summary="Asset details")
async def get_asset(asset_id: int, s: AsyncSession = Depends(get_session)):
    a = await _get_asset(s, asset_id)
    return _asset_out(a, await _linked_controls(s, asset_id))


@router.post("", response_model=AssetOut, status_code=201, summary="Create asset")
async def create_asset(body: AssetCreate, s: AsyncSession = Depends(get_session)):
    a = Asset(**_to_columns(body.model_dump()))
    s.add(a)
    await s.commit()
    await s.refresh(a)
    return _asset_out(a)


@router.put("/{asset_id}", response_model=AssetOut, summary="Update asset")
async def update_asset(asset_id: int, body: AssetUpdate, s: AsyncSession = Depends(get_session)):
    a = await _get_asset(s, asset_id)
    for k, val in _to_columns(body.model_dump(exclude_unset=True)).items():
        setattr(a, k, val)
    await s.commit()
    await s.refresh(a)
    return _asset_out(a, await _linked_controls(s, asset_id))


@router.delete("/{asset_id}", response_model=DeletedOut, summary="Delete asset")
async def delete_asset(asset_id: int, s: AsyncSession = Depends(get_session)):
    a = await _get_asset(s, asset_id)
    await s.execute(delete(AssetControl).where(AssetControl.asset_id == asset_id))
    await s.delete(a)
    await s.commit()
    return DeletedOut(id=asset_id)


# ═══════════════════ LINKED CONTROLS ═══════════════════

@router.post("/{asset_id}/controls", response_model=BatchResult, summary="Link controls to asset")
async def link_controls(asset_id: int, body: ControlIds, s: AsyncSession = Depends(get_session)):
    await _get_asset(s, asset_id)
    wanted = set(body.control_ids)
    found = set((await s.execute(select(Control.id).where(Control.id.in_(wanted)))).scalars().all())
    missing = wanted - found
    if missing:
        raise HTTPException(404, f"Controls not found: {sorted(missing)}")

    existing = set((await s.execute(
        select(AssetControl.control_id).where(AssetControl.asset_id == asset_id)
    )).scalars().all())
    added = 0
    for cid in body.control_ids:
        if cid in existing:
            continue
        s.add(AssetControl(asset_id=asset_id, control_id=cid))
        existing.add(cid)
        added += 1
    await s.commit()
    return BatchResult(added=added)


@router.delete("/{asset_id}/controls", response_model=BatchResult, summary="Unlink controls from asset")
async def unlink_controls(asset_id: int, body: ControlIds, s: AsyncSession = Depends(get_session)):
    await _get_asset(s, asset_id)
    result = await s.execute(
        delete(AssetControl).where(
            AssetControl.asset_id == asset_id,
            AssetControl.control_id.in_(body.control_ids),
        )
    )
    await s.commit()
    return BatchResult(removed=result.rowcount or 0)
