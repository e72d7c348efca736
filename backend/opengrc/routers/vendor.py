"""
Vendor (TPRM) registry module — /api/v1/vendors
"""
import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.vendor import Vendor, VendorAssessment
from opengrc.schemas.common import DeletedOut
from opengrc.schemas.vendor import (
    CRITICALITY, VENDOR_STATUS,
    VendorAssessmentCreate, VendorAssessmentOut,
    VendorCreate, VendorOut, VendorStats, VendorUpdate,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/vendors", tags=["Vendors"])

CONTRACT_WINDOW_DAYS = 90

_criticality_rank = case(
    (Vendor.criticality == "critical", 0),
    (Vendor.criticality == "high", 1),
    (Vendor.criticality == "medium", 2),
    (Vendor.criticality == "low", 3),
    else_=4,
)


async def _assessment_counts(s: AsyncSession, vendor_ids: list[int]) -> dict[int, int]:
    if not vendor_ids:
        return {}
    q = (
        select(VendorAssessment.vendor_id, func.count())
        .where(VendorAssessment.vendor_id.in_(vendor_ids))
        .group_by(VendorAssessment.vendor_id)
    )
    return dict((await s.execute(q)).all())


def _vendor_out(v: Vendor, assessment_count: int = 0) -> VendorOut:
    out = VendorOut.model_validate(v)
    out.assessment_count = assessment_count
    return out


async def _get_vendor(s: AsyncSession, vendor_id: int) -> Vendor:
    v = await s.get(Vendor, vendor_id)
    if not v:
        raise HTTPException(404, "Vendor not found")
    return v


async def _refresh_derived(s: AsyncSession, v: Vendor) -> None:
    """Copy rating and dates from the most recent assessment onto the vendor."""
    q = (
        select(VendorAssessment)
        .where(VendorAssessment.vendor_id == v.id)
        .order_by(VendorAssessment.assessed_at.desc(), VendorAssessment.id.desc())
        .limit(1)
    )
    latest = (await s.execute(q)).scalar_one_or_none()
    if latest is None:
        v.last_risk_rating = None
        v.last_assessment_date = None
        v.next_assessment_date = None
    else:
        v.last_risk_rating = latest.risk_rating
        v.last_assessment_date = latest.assessed_at
        v.next_assessment_date = latest.next_assessment_date
    log.info("Vendor %s derived fields refreshed (rating=%s)", v.id, v.last_risk_rating)


# ═══════════════════ STATS (before /{id}) ═══════════════════

@router.get("/stats", response_model=VendorStats, summary="Vendor summary counts")
async def vendor_stats(s: AsyncSession = Depends(get_session)):
    vendors = (await s.execute(select(Vendor))).scalars().all()
    today = date.today()
    horizon = today + timedelta(days=CONTRACT_WINDOW_DAYS)

    by_criticality: dict[str, int] = {}
    by_category: dict[str, int] = {}
    for v in vendors:
        by_criticality[v.criticality] = by_criticality.get(v.criticality, 0) + 1
        cat = v.category or "uncategorized"
        by_category[cat] = by_category.get(cat, 0) + 1

    return VendorStats(
        total=len(vendors),
        active=sum(1 for v in vendors if v.status == "active"),
        inactive=sum(1 for v in vendors if v.status == "inactive"),
        by_criticality=by_criticality,
        by_category=by_category,
        contracts_expiring_soon=sum(
            1 for v in vendors if v.contract_end and today <= v.contract_end <= horizon
        ),
        needs_assessment=sum(
            1 for v in vendors
            if v.status == "active" and (v.next_assessment_date is None or v.next_assessment_date < today)
        ),
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[VendorOut], summary="List vendors")
async def list_vendors(
    search: str | None = Query(None),
    status: str | None = Query(None, pattern=VENDOR_STATUS),
    category: str | None = Query(None),
    criticality: str | None = Query(None, pattern=CRITICALITY),
    contract_expiring: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Vendor)
    if search:
        term = f"%{search}%"
        q = q.where(or_(Vendor.name.ilike(term), Vendor.description.ilike(term)))
    if status:
        q = q.where(Vendor.status == status)
    if category:
        q = q.where(Vendor.category == category)
    if criticality:
        q = q.where(Vendor.criticality == criticality)
    if contract_expiring:
        today = date.today()
        q = q.where(
            Vendor.contract_end.is_not(None),
            Vendor.contract_end >= today,
            Vendor.contract_end <= today + timedelta(days=CONTRACT_WINDOW_DAYS),
        )
    q = q.order_by(_criticality_rank, Vendor.name).limit(limit).offset(offset)
    vendors = (await s.execute(q)).scalars().all()
    counts = await _assessment_counts(s, [v.id for v in vendors])
    return [_vendor_out(v, counts.get(v.id, 0)) for v in vendors]


@router.get("/{vendor_id}", response_model=VendorOut, summary="Vendor details")
async def get_vendor(vendor_id: int, s: AsyncSession = Depends(get_session)):
    v = await _get_vendor(s, vendor_id)
    counts = await _assessment_counts(s, [v.id])
    return _vendor_out(v, counts.get(v.id, 0))


@router.post("", response_model=VendorOut, status_code=201, summary="Create vendor")
async def create_vendor(body: VendorCreate, s: AsyncSession = Depends(get_session)):
    v = Vendor(**body.model_dump())
    s.add(v)
    await s.commit()
    await s.refresh(v)
    return _vendor_out(v)


@router.put("/{vendor_id}", response_model=VendorOut, summary="Update vendor")
async def update_vendor(vendor_id: int, body: VendorUpdate, s: AsyncSession = Depends(get_session)):
    v = await _get_vendor(s, vendor_id)
    for k, val in body.model_dump(exclude_unset=True).items():
        setattr(v, k, val)
    await s.commit()
    await s.refresh(v)
    counts = await _assessment_counts(s, [v.id])
    return _vendor_out(v, counts.get(v.id, 0))


@router.delete("/{vendor_id}", response_model=DeletedOut, summary="Delete vendor")
async def delete_vendor(vendor_id: int, s: AsyncSession = Depends(get_session)):
    v = await _get_vendor(s, vendor_id)
    await s.execute(delete(VendorAssessment).where(VendorAssessment.vendor_id == vendor_id))
    await s.delete(v)
    await s.commit()
    return DeletedOut(id=vendor_id)


# ═══════════════════ ASSESSMENTS ═══════════════════

@router.get(
    "/{vendor_id}/assessments",
    response_model=list[VendorAssessmentOut],
    summary="Vendor assessment history",
)
async def list_assessments(vendor_id: int, s: AsyncSession = Depends(get_session)):
    await _get_vendor(s, vendor_id)
    q = (
        select(VendorAssessment)
        .where(VendorAssessment.vendor_id == vendor_id)
        .order_by(VendorAssessment.assessed_at.desc(), VendorAssessment.id.desc())
    )
    return (await s.execute(q)).scalars().all()


@router.post(
    "/{vendor_id}/assessments",
    response_model=VendorAssessmentOut,
    status_code=201,
    summary="Record vendor assessment",
)
async def create_assessment(
    vendor_id: int, body: VendorAssessmentCreate, s: AsyncSession = Depends(get_session),
):
    v = await _get_vendor(s, vendor_id)
    data = body.model_dump()
    if data["assessed_at"] is None:
        data["assessed_at"] = datetime.utcnow()
    a = VendorAssessment(vendor_id=vendor_id, **data)
    s.add(a)
    await s.flush()
    await _refresh_derived(s, v)
    await s.commit()
    await s.refresh(a)
    return a
