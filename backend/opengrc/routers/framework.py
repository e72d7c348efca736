"""
Frameworks & requirements module — /api/v1/frameworks

Requirements are stored flat (parent_id); trees, cascades and cycle
checks go through services.requirement_tree.
"""
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.control import ControlRequirementMapping
from opengrc.models.framework import Framework, FrameworkRequirement
from opengrc.schemas.common import DeletedOut
from opengrc.schemas.framework import (
    CategoryCoverage, FrameworkCreate, FrameworkOut, FrameworkUpdate,
    GapAnalysisOut, RequirementCoverage, RequirementCreate,
    RequirementImportResult, RequirementOut, RequirementTreeOut,
    RequirementUpdate,
)
from opengrc.services.requirement_import import import_requirements, read_excel_rows, read_yaml_rows
from opengrc.services.requirement_tree import build_tree, children_index, descendants, would_create_cycle

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/frameworks", tags=["Frameworks"])


async def _get_framework(s: AsyncSession, fw_id: int) -> Framework:
    fw = await s.get(Framework, fw_id)
    if not fw:
        raise HTTPException(404, "Framework not found")
    return fw


def _ensure_editable(fw: Framework) -> None:
    if fw.is_system:
        raise HTTPException(403, "System frameworks cannot be modified")


async def _get_requirement(s: AsyncSession, fw_id: int, req_id: int) -> FrameworkRequirement:
    req = await s.get(FrameworkRequirement, req_id)
    if not req or req.framework_id != fw_id:
        raise HTTPException(404, "Requirement not found in this framework")
    return req


async def _framework_requirements(s: AsyncSession, fw_id: int) -> list[FrameworkRequirement]:
    q = (
        select(FrameworkRequirement)
        .where(FrameworkRequirement.framework_id == fw_id)
        .order_by(FrameworkRequirement.sort_order, FrameworkRequirement.code)
    )
    return list((await s.execute(q)).scalars().all())


async def _requirement_counts(s: AsyncSession, fw_ids: list[int]) -> dict[int, int]:
    if not fw_ids:
        return {}
    q = (
        select(FrameworkRequirement.framework_id, func.count())
        .where(FrameworkRequirement.framework_id.in_(fw_ids))
        .group_by(FrameworkRequirement.framework_id)
    )
    return dict((await s.execute(q)).all())


def _framework_out(fw: Framework, requirement_count: int = 0) -> FrameworkOut:
    out = FrameworkOut.model_validate(fw)
    out.requirement_count = requirement_count
    return out


async def _check_parent(s: AsyncSession, fw_id: int, parent_id: int | None) -> None:
    if parent_id is None:
        return
    parent = await s.get(FrameworkRequirement, parent_id)
    if not parent or parent.framework_id != fw_id:
        raise HTTPException(400, "Parent requirement must belong to the same framework")


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[FrameworkOut], summary="List frameworks")
async def list_frameworks(
    search: str | None = Query(None),
    category: str | None = Query(None),
    is_system: bool | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Framework)
    if search:
        term = f"%{search}%"
        q = q.where(or_(Framework.name.ilike(term), Framework.description.ilike(term)))
    if category:
        q = q.where(Framework.category == category)
    if is_system is not None:
        q = q.where(Framework.is_system.is_(is_system))
    q = q.order_by(Framework.is_system.desc(), Framework.name).limit(limit).offset(offset)
    frameworks = (await s.execute(q)).scalars().all()
    counts = await _requirement_counts(s, [fw.id for fw in frameworks])
    return [_framework_out(fw, counts.get(fw.id, 0)) for fw in frameworks]


@router.get("/{fw_id}", response_model=FrameworkOut, summary="Framework details")
async def get_framework(fw_id: int, s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, fw_id)
    counts = await _requirement_counts(s, [fw.id])
    return _framework_out(fw, counts.get(fw.id, 0))


@router.post("", response_model=FrameworkOut, status_code=201, summary="Create framework")
async def create_framework(body: FrameworkCreate, s: AsyncSession = Depends(get_session)):
    fw = Framework(**body.model_dump())
    s.add(fw)
    await s.commit()
    await s.refresh(fw)
    return _framework_out(fw)


@router.put("/{fw_id}", response_model=FrameworkOut, summary="Update framework")
async def update_framework(fw_id: int, body: FrameworkUpdate, s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, fw_id)
    _ensure_editable(fw)
    for k, val in body.model_dump(exclude_unset=True).items():
        setattr(fw, k, val)
    await s.commit()
    await s.refresh(fw)
    counts = await _requirement_counts(s, [fw.id])
    return _framework_out(fw, counts.get(fw.id, 0))


@router.delete("/{fw_id}", response_model=DeletedOut, summary="Delete framework")
async def delete_framework(fw_id: int, s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, fw_id)
    _ensure_editable(fw)
    req_ids = select(FrameworkRequirement.id).where(FrameworkRequirement.framework_id == fw_id)
    mappings = await s.execute(
        delete(ControlRequirementMapping).where(ControlRequirementMapping.requirement_id.in_(req_ids))
    )
    reqs = await s.execute(delete(FrameworkRequirement).where(FrameworkRequirement.framework_id == fw_id))
    await s.delete(fw)
    await s.commit()
    log.info("Framework %s deleted with %s requirements and %s control mappings",
             fw_id, reqs.rowcount, mappings.rowcount)
    return DeletedOut(id=fw_id)


# ═══════════════════ REQUIREMENTS ═══════════════════

@router.get(
    "/{fw_id}/requirements",
    response_model=None,
    summary="Framework requirements (flat or ?tree=true)",
)
async def list_requirements(
    fw_id: int,
    tree: bool = Query(False),
    s: AsyncSession = Depends(get_session),
):
    await _get_framework(s, fw_id)
    reqs = await _framework_requirements(s, fw_id)
    if not tree:
        return [RequirementOut.model_validate(r) for r in reqs]
    nested = build_tree(reqs, lambda r: RequirementOut.model_validate(r).model_dump())
    return [RequirementTreeOut.model_validate(n) for n in nested]


@router.post(
    "/{fw_id}/requirements",
    response_model=RequirementOut,
    status_code=201,
    summary="Add requirement",
)
async def create_requirement(fw_id: int, body: RequirementCreate, s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, fw_id)
    _ensure_editable(fw)
    await _check_parent(s, fw_id, body.parent_id)
    req = FrameworkRequirement(framework_id=fw_id, **body.model_dump())
    s.add(req)
    await s.commit()
    await s.refresh(req)
    return req


@router.post(
    "/{fw_id}/requirements/batch",
    response_model=list[RequirementOut],
    status_code=201,
    summary="Add several requirements",
)
async def create_requirements_batch(
    fw_id: int, body: list[RequirementCreate], s: AsyncSession = Depends(get_session),
):
    fw = await _get_framework(s, fw_id)
    _ensure_editable(fw)
    created = []
    for item in body:
        await _check_parent(s, fw_id, item.parent_id)
        req = FrameworkRequirement(framework_id=fw_id, **item.model_dump())
        s.add(req)
        await s.flush()
        created.append(req)
    await s.commit()
    for req in created:
        await s.refresh(req)
    return created


@router.post(
    "/{fw_id}/requirements/import",
    response_model=RequirementImportResult,
    summary="Import requirements from YAML or Excel",
)
async def import_requirements_file(
    fw_id: int,
    file: UploadFile = File(...),
    s: AsyncSession = Depends(get_session),
):
    fw = await _get_framework(s, fw_id)
    _ensure_editable(fw)
    name = (file.filename or "").lower()
    try:
        if name.endswith((".yaml", ".yml")):
            rows = read_yaml_rows(file.file)
        elif name.endswith(".xlsx"):
            rows = read_excel_rows(file.file)
        else:
            raise HTTPException(400, "File must be .yaml, .yml or .xlsx")
        created, skipped, errors = await import_requirements(s, fw, rows)
        await s.commit()
    except ValueError as e:
        await s.rollback()
        raise HTTPException(400, str(e))
    return RequirementImportResult(created=created, skipped=skipped, errors=errors)


@router.put(
    "/{fw_id}/requirements/{req_id}",
    response_model=RequirementOut,
    summary="Update requirement",
)
async def update_requirement(
    fw_id: int, req_id: int, body: RequirementUpdate, s: AsyncSession = Depends(get_session),
):
    fw = await _get_framework(s, fw_id)
    _ensure_editable(fw)
    req = await _get_requirement(s, fw_id, req_id)
    data = body.model_dump(exclude_unset=True)

    if "parent_id" in data and data["parent_id"] is not None:
        new_parent = data["parent_id"]
        if new_parent == req_id:
            raise HTTPException(400, "A requirement cannot be its own parent")
        await _check_parent(s, fw_id, new_parent)
        index = children_index(await _framework_requirements(s, fw_id))
        if would_create_cycle(req_id, new_parent, index):
            raise HTTPException(400, "Moving the requirement there would create a cycle")

    for k, val in data.items():
        setattr(req, k, val)
    await s.commit()
    await s.refresh(req)
    return req


@router.delete(
    "/{fw_id}/requirements/{req_id}",
    response_model=DeletedOut,
    summary="Delete requirement and its children",
)
async def delete_requirement(fw_id: int, req_id: int, s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, fw_id)
    _ensure_editable(fw)
    await _get_requirement(s, fw_id, req_id)

    index = children_index(await _framework_requirements(s, fw_id))
    doomed = descendants(req_id, index)
    await s.execute(
        delete(ControlRequirementMapping).where(ControlRequirementMapping.requirement_id.in_(doomed))
    )
    await s.execute(delete(FrameworkRequirement).where(FrameworkRequirement.id.in_(doomed)))
    await s.commit()
    log.info("Requirement %s deleted with %d descendants", req_id, len(doomed) - 1)
    return DeletedOut(id=req_id)


# ═══════════════════ GAP ANALYSIS ═══════════════════

@router.get("/{fw_id}/gap-analysis", response_model=GapAnalysisOut, summary="Control coverage of requirements")
async def gap_analysis(fw_id: int, s: AsyncSession = Depends(get_session)):
    fw = await _get_framework(s, fw_id)
    reqs = await _framework_requirements(s, fw_id)

    count_q = (
        select(ControlRequirementMapping.requirement_id, func.count())
        .join(FrameworkRequirement, FrameworkRequirement.id == ControlRequirementMapping.requirement_id)
        .where(FrameworkRequirement.framework_id == fw_id)
        .group_by(ControlRequirementMapping.requirement_id)
    )
    control_counts = dict((await s.execute(count_q)).all())

    coverage = []
    categories: dict[str, list[int]] = {}
    for r in reqs:
        n = control_counts.get(r.id, 0)
        coverage.append(RequirementCoverage(
            id=r.id, code=r.code, name=r.name, category=r.category,
            control_count=n, is_covered=n > 0,
        ))
        bucket = categories.setdefault(r.category or "Uncategorized", [0, 0])
        bucket[0] += 1
        if n > 0:
            bucket[1] += 1

    total = len(reqs)
    covered = sum(1 for c in coverage if c.is_covered)
    return GapAnalysisOut(
        framework_id=fw.id,
        framework_name=fw.name,
        total_requirements=total,
        covered=covered,
        uncovered=total - covered,
        coverage_percentage=round(covered / total * 100, 1) if total else 0.0,
        by_category=[
            CategoryCoverage(
                category=cat, total=t, covered=c,
                percentage=round(c / t * 100, 1) if t else 0.0,
            )
            for cat, (t, c) in sorted(categories.items())
        ],
        requirements=coverage,
    )
