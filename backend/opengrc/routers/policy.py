"""
Policy registry module — /api/v1/policies

Every content change archives the previous body in policy_versions and
bumps Policy.version. Acknowledgments are recorded per version, so a
bump leaves every user unacknowledged until they acknowledge again.
"""
import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.middleware.audit_auto import current_user_id
from opengrc.models.policy import Policy, PolicyAcknowledgment, PolicyVersion
from opengrc.schemas.common import DeletedOut
from opengrc.schemas.policy import (
    POLICY_STATUS,
    AcknowledgeRequest, AcknowledgmentStatus,
    PolicyAcknowledgmentOut, PolicyCreate, PolicyFromTemplate,
    PolicyOut, PolicyStats, PolicyUpdate, PolicyVersionOut,
)
from opengrc.services.policy_templates import get_template

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/policies", tags=["Policies"])

VALID_TRANSITIONS: dict[str, set[str]] = {
    "draft": {"pending_approval", "archived"},
    "pending_approval": {"draft", "published"},
    "published": {"archived", "draft"},
    "archived": {"draft"},
}


async def _get_policy(s: AsyncSession, pol_id: int) -> Policy:
    p = await s.get(Policy, pol_id)
    if not p:
        raise HTTPException(404, "Policy not found")
    return p


async def _ensure_code_free(s: AsyncSession, code: str, exclude_id: int | None = None) -> None:
    q = select(Policy.id).where(Policy.code == code)
    if exclude_id is not None:
        q = q.where(Policy.id != exclude_id)
    if (await s.execute(q)).first():
        raise HTTPException(409, f"Policy code '{code}' already exists")


async def _policy_out(s: AsyncSession, p: Policy) -> PolicyOut:
    ack_count = (await s.execute(
        select(func.count()).select_from(PolicyAcknowledgment).where(
            PolicyAcknowledgment.policy_id == p.id,
            PolicyAcknowledgment.policy_version == p.version,
        )
    )).scalar() or 0
    return PolicyOut(
        id=p.id, code=p.code, title=p.title, category=p.category,
        content=p.content, version=p.version, status=p.status,
        owner=p.owner, approver=p.approver, approved_at=p.approved_at,
        effective_date=p.effective_date, review_date=p.review_date,
        template_id=p.template_id, acknowledgment_count=ack_count,
        created_at=p.created_at, updated_at=p.updated_at,
    )


def _apply_status(p: Policy, new_status: str) -> None:
    if new_status == p.status:
        return
    if new_status not in VALID_TRANSITIONS.get(p.status, set()):
        raise HTTPException(400, f"Invalid status transition: {p.status} -> {new_status}")
    p.status = new_status
    if new_status == "published":
        p.approved_at = datetime.utcnow()


# ═══════════════════ STATS (before /{id}) ═══════════════════

@router.get("/stats", response_model=PolicyStats, summary="Policy registry summary")
async def policy_stats(s: AsyncSession = Depends(get_session)):
    policies = (await s.execute(select(Policy))).scalars().all()
    today = date.today()
    by_category: dict[str, int] = {}
    for p in policies:
        cat = p.category or "uncategorized"
        by_category[cat] = by_category.get(cat, 0) + 1
    return PolicyStats(
        total=len(policies),
        published=sum(1 for p in policies if p.status == "published"),
        draft=sum(1 for p in policies if p.status == "draft"),
        pending_approval=sum(1 for p in policies if p.status == "pending_approval"),
        archived=sum(1 for p in policies if p.status == "archived"),
        needs_review=sum(1 for p in policies if p.review_date and p.review_date <= today),
        by_category=by_category,
    )


# ═══════════════════ LIST ═══════════════════

@router.get("", response_model=list[PolicyOut], summary="List policies")
async def list_policies(
    search: str | None = Query(None),
    status: str | None = Query(None, pattern=POLICY_STATUS),
    category: str | None = Query(None),
    needs_review: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    q = select(Policy)
    if search:
        term = f"%{search}%"
        q = q.where(or_(Policy.code.ilike(term), Policy.title.ilike(term), Policy.content.ilike(term)))
    if status:
        q = q.where(Policy.status == status)
    if category:
        q = q.where(Policy.category == category)
    if needs_review:
        q = q.where(Policy.review_date.is_not(None), Policy.review_date <= date.today())
    q = q.order_by(Policy.code).limit(limit).offset(offset)
    policies = (await s.execute(q)).scalars().all()
    return [await _policy_out(s, p) for p in policies]


@router.post(
    "/from-template/{template_id}",
    response_model=PolicyOut,
    status_code=201,
    summary="Create draft policy from template",
)
async def create_from_template(
    template_id: str, body: PolicyFromTemplate | None = None, s: AsyncSession = Depends(get_session),
):
    tpl = get_template(template_id)
    if tpl is None:
        raise HTTPException(404, "Policy template not found")
    body = body or PolicyFromTemplate()
    code = body.code or tpl.code
    await _ensure_code_free(s, code)
    p = Policy(
        code=code, title=tpl.title, category=tpl.category, content=tpl.content,
        status="draft", owner=body.owner, template_id=tpl.id,
    )
    s.add(p)
    await s.commit()
    await s.refresh(p)
    return await _policy_out(s, p)


@router.get("/{pol_id}", response_model=PolicyOut, summary="Policy details")
async def get_policy(pol_id: int, s: AsyncSession = Depends(get_session)):
    return await _policy_out(s, await _get_policy(s, pol_id))


@router.post("", response_model=PolicyOut, status_code=201, summary="Create policy")
async def create_policy(body: PolicyCreate, s: AsyncSession = Depends(get_session)):
    await _ensure_code_free(s, body.code)
    p = Policy(**body.model_dump())
    if p.status == "published":
        p.approved_at = datetime.utcnow()
    s.add(p)
    await s.commit()
    await s.refresh(p)
    return await _policy_out(s, p)


@router.put("/{pol_id}", response_model=PolicyOut, summary="Update policy")
async def update_policy(pol_id: int, body: PolicyUpdate, s: AsyncSession = Depends(get_session)):
    p = await _get_policy(s, pol_id)
    data = body.model_dump(exclude_unset=True)
    change_summary = data.pop("change_summary", None)
    new_status = data.pop("status", None)

    if data.get("code"):
        await _ensure_code_free(s, data["code"], exclude_id=pol_id)
    if new_status is not None:
        _apply_status(p, new_status)

    if "content" in data and data["content"] != p.content:
        s.add(PolicyVersion(
            policy_id=p.id,
            version=p.version,
            content=p.content,
            change_summary=change_summary,
            changed_by=current_user_id(),
        ))
        p.version += 1
        log.info("Policy %s content changed, now version %d", p.id, p.version)

    for k, val in data.items():
        setattr(p, k, val)
    await s.commit()
    await s.refresh(p)
    return await _policy_out(s, p)


@router.delete("/{pol_id}", response_model=DeletedOut, summary="Delete policy")
async def delete_policy(pol_id: int, s: AsyncSession = Depends(get_session)):
    p = await _get_policy(s, pol_id)
    await s.execute(delete(PolicyVersion).where(PolicyVersion.policy_id == pol_id))
    await s.execute(delete(PolicyAcknowledgment).where(PolicyAcknowledgment.policy_id == pol_id))
    await s.delete(p)
    await s.commit()
    return DeletedOut(id=pol_id)


# ═══════════════════ VERSIONS ═══════════════════

@router.get("/{pol_id}/versions", response_model=list[PolicyVersionOut], summary="Policy version history")
async def list_versions(pol_id: int, s: AsyncSession = Depends(get_session)):
    await _get_policy(s, pol_id)
    q = (
        select(PolicyVersion)
        .where(PolicyVersion.policy_id == pol_id)
        .order_by(PolicyVersion.version.desc())
    )
    return (await s.execute(q)).scalars().all()


# ═══════════════════ ACKNOWLEDGMENTS ═══════════════════

@router.get(
    "/{pol_id}/acknowledgments",
    response_model=list[PolicyAcknowledgmentOut],
    summary="Policy acknowledgments",
)
async def list_acknowledgments(
    pol_id: int,
    current_only: bool = Query(False),
    s: AsyncSession = Depends(get_session),
):
    p = await _get_policy(s, pol_id)
    q = select(PolicyAcknowledgment).where(PolicyAcknowledgment.policy_id == pol_id)
    if current_only:
        q = q.where(PolicyAcknowledgment.policy_version == p.version)
    q = q.order_by(PolicyAcknowledgment.acknowledged_at.desc())
    return (await s.execute(q)).scalars().all()


@router.get(
    "/{pol_id}/acknowledgments/{user_id}",
    response_model=AcknowledgmentStatus,
    summary="Has the user acknowledged the current version",
)
async def acknowledgment_status(pol_id: int, user_id: str, s: AsyncSession = Depends(get_session)):
    p = await _get_policy(s, pol_id)
    found = (await s.execute(
        select(PolicyAcknowledgment.id).where(
            PolicyAcknowledgment.policy_id == pol_id,
            PolicyAcknowledgment.user_id == user_id,
            PolicyAcknowledgment.policy_version == p.version,
        )
    )).first()
    return AcknowledgmentStatus(policy_id=pol_id, user_id=user_id, version=p.version, acknowledged=found is not None)


@router.post(
    "/{pol_id}/acknowledge",
    response_model=PolicyAcknowledgmentOut,
    summary="Acknowledge the current version",
)
async def acknowledge_policy(pol_id: int, body: AcknowledgeRequest, s: AsyncSession = Depends(get_session)):
    p = await _get_policy(s, pol_id)
    existing = (await s.execute(
        select(PolicyAcknowledgment).where(
            PolicyAcknowledgment.policy_id == pol_id,
            PolicyAcknowledgment.user_id == body.user_id,
            PolicyAcknowledgment.policy_version == p.version,
        )
    )).scalar_one_or_none()
    if existing:
        return existing
    ack = PolicyAcknowledgment(policy_id=pol_id, user_id=body.user_id, policy_version=p.version)
    s.add(ack)
    await s.commit()
    await s.refresh(ack)
    return ack
