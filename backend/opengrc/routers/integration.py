"""
Integrations & AWS inventory viewers — /api/v1/integrations (read-only)

Rows are written by the external AWS collector; this module only lists
them with offset/limit pagination and derived risk flags.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.database import get_session
from opengrc.models.aws import (
    AwsCloudTrailEvent, AwsConfigRule, AwsEc2Instance, AwsIamPolicy,
    AwsIamRole, AwsIamUser, AwsRdsInstance, AwsS3Bucket, AwsSecurityFinding,
)
from opengrc.models.integration import Integration
from opengrc.schemas.aws import (
    AwsOverview, CloudTrailEventOut, ConfigRuleOut, Ec2InstanceOut,
    FindingsSummary, IamPolicyOut, IamRoleOut, IamUserOut, IntegrationOut,
    Page, RdsInstanceOut, S3BucketOut, SecurityFindingOut,
)
from opengrc.services.aws_flags import has_access_keys, risk_flags

router = APIRouter(prefix="/api/v1/integrations", tags=["Integrations"])

PAGE_DEFAULT = 50
PAGE_MAX = 500


async def _get_integration(s: AsyncSession, integration_id: int) -> Integration:
    i = await s.get(Integration, integration_id)
    if not i:
        raise HTTPException(404, "Integration not found")
    return i


def _search(model, search: str | None, *columns: str):
    if not search:
        return None
    term = f"%{search}%"
    return or_(*(getattr(model, c).ilike(term) for c in columns))


async def _page(
    s: AsyncSession,
    model,
    out_schema,
    integration_id: int,
    conditions: list,
    order_by,
    limit: int,
    offset: int,
    row_filter=None,
) -> Page:
    await _get_integration(s, integration_id)
    q = select(model).where(model.integration_id == integration_id, *[c for c in conditions if c is not None])

    if row_filter is None:
        total = (await s.execute(select(func.count()).select_from(q.subquery()))).scalar() or 0
        rows = (await s.execute(q.order_by(*order_by).limit(limit).offset(offset))).scalars().all()
    else:
        # JSON-derived filters are evaluated in Python
        matched = [r for r in (await s.execute(q.order_by(*order_by))).scalars().all() if row_filter(r)]
        total = len(matched)
        rows = matched[offset:offset + limit]

    data = []
    for r in rows:
        item = out_schema.model_validate(r)
        item.risk_flags = risk_flags(r)
        data.append(item)
    return Page(data=data, total=total, limit=limit, offset=offset)


# ═══════════════════ INTEGRATIONS ═══════════════════

@router.get("", response_model=list[IntegrationOut], summary="List integrations")
async def list_integrations(s: AsyncSession = Depends(get_session)):
    q = select(Integration).order_by(Integration.name)
    return (await s.execute(q)).scalars().all()


@router.get("/{integration_id}", response_model=IntegrationOut, summary="Integration details")
async def get_integration(integration_id: int, s: AsyncSession = Depends(get_session)):
    return await _get_integration(s, integration_id)


# ═══════════════════ AWS OVERVIEW ═══════════════════

@router.get("/{integration_id}/aws/overview", response_model=AwsOverview, summary="AWS inventory overview")
async def aws_overview(integration_id: int, s: AsyncSession = Depends(get_session)):
    integration = await _get_integration(s, integration_id)

    async def _count(model, *conditions) -> int:
        q = select(func.count()).select_from(model).where(model.integration_id == integration_id, *conditions)
        return (await s.execute(q)).scalar() or 0

    synced: list[datetime] = []
    for model in (AwsS3Bucket, AwsEc2Instance, AwsRdsInstance, AwsIamUser, AwsIamRole,
                  AwsIamPolicy, AwsSecurityFinding, AwsConfigRule, AwsCloudTrailEvent):
        latest = (await s.execute(
            select(func.max(model.last_synced_at)).where(model.integration_id == integration_id)
        )).scalar()
        if latest is not None:
            synced.append(latest)

    return AwsOverview(
        integration_id=integration_id,
        s3_buckets=await _count(AwsS3Bucket),
        public_buckets=await _count(AwsS3Bucket, AwsS3Bucket.is_public.is_(True)),
        ec2_instances=await _count(AwsEc2Instance),
        rds_instances=await _count(AwsRdsInstance),
        iam_users=await _count(AwsIamUser),
        users_without_mfa=await _count(AwsIamUser, AwsIamUser.mfa_enabled.is_(False)),
        iam_roles=await _count(AwsIamRole),
        iam_policies=await _count(AwsIamPolicy),
        findings=await _count(AwsSecurityFinding),
        critical_findings=await _count(AwsSecurityFinding, AwsSecurityFinding.severity_label == "CRITICAL"),
        high_findings=await _count(AwsSecurityFinding, AwsSecurityFinding.severity_label == "HIGH"),
        config_rules=await _count(AwsConfigRule),
        non_compliant_rules=await _count(AwsConfigRule, AwsConfigRule.compliance_type == "NON_COMPLIANT"),
        cloudtrail_events=await _count(AwsCloudTrailEvent),
        last_synced_at=max(synced) if synced else integration.last_sync_at,
    )


# ═══════════════════ INVENTORY ═══════════════════

@router.get("/{integration_id}/aws/s3/buckets", response_model=Page[S3BucketOut], summary="S3 buckets")
async def list_s3_buckets(
    integration_id: int,
    search: str | None = Query(None),
    region: str | None = Query(None),
    is_public: bool | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsS3Bucket
    return await _page(s, m, S3BucketOut, integration_id, [
        _search(m, search, "bucket_name"),
        m.region == region if region else None,
        m.is_public.is_(is_public) if is_public is not None else None,
    ], (m.bucket_name,), limit, offset)


@router.get("/{integration_id}/aws/ec2/instances", response_model=Page[Ec2InstanceOut], summary="EC2 instances")
async def list_ec2_instances(
    integration_id: int,
    search: str | None = Query(None),
    region: str | None = Query(None),
    is_public: bool | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsEc2Instance
    return await _page(s, m, Ec2InstanceOut, integration_id, [
        _search(m, search, "instance_id", "instance_type", "private_ip", "public_ip"),
        m.region == region if region else None,
        m.is_public.is_(is_public) if is_public is not None else None,
    ], (m.region, m.instance_id), limit, offset)


@router.get("/{integration_id}/aws/rds/instances", response_model=Page[RdsInstanceOut], summary="RDS instances")
async def list_rds_instances(
    integration_id: int,
    search: str | None = Query(None),
    region: str | None = Query(None),
    is_public: bool | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsRdsInstance
    return await _page(s, m, RdsInstanceOut, integration_id, [
        _search(m, search, "db_instance_identifier", "engine"),
        m.region == region if region else None,
        m.publicly_accessible.is_(is_public) if is_public is not None else None,
    ], (m.region, m.db_instance_identifier), limit, offset)


@router.get("/{integration_id}/aws/iam/users", response_model=Page[IamUserOut], summary="IAM users")
async def list_iam_users(
    integration_id: int,
    search: str | None = Query(None),
    mfa_enabled: bool | None = Query(None),
    has_access_keys_filter: bool | None = Query(None, alias="has_access_keys"),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsIamUser
    row_filter = None
    if has_access_keys_filter is not None:
        def row_filter(u: AwsIamUser) -> bool:
            return has_access_keys(u) == has_access_keys_filter
    return await _page(s, m, IamUserOut, integration_id, [
        _search(m, search, "user_name", "arn"),
        m.mfa_enabled.is_(mfa_enabled) if mfa_enabled is not None else None,
    ], (m.risk_score.desc(), m.user_name), limit, offset, row_filter=row_filter)


@router.get("/{integration_id}/aws/iam/roles", response_model=Page[IamRoleOut], summary="IAM roles")
async def list_iam_roles(
    integration_id: int,
    search: str | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsIamRole
    return await _page(s, m, IamRoleOut, integration_id, [
        _search(m, search, "role_name", "arn", "description"),
    ], (m.role_name,), limit, offset)


@router.get("/{integration_id}/aws/iam/policies", response_model=Page[IamPolicyOut], summary="IAM policies")
async def list_iam_policies(
    integration_id: int,
    search: str | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsIamPolicy
    return await _page(s, m, IamPolicyOut, integration_id, [
        _search(m, search, "policy_name", "arn", "description"),
    ], (m.risk_score.desc(), m.policy_name), limit, offset)


# ═══════════════════ FINDINGS & COMPLIANCE ═══════════════════

@router.get(
    "/{integration_id}/aws/findings/summary",
    response_model=FindingsSummary,
    summary="Security Hub findings by severity",
)
async def findings_summary(integration_id: int, s: AsyncSession = Depends(get_session)):
    await _get_integration(s, integration_id)
    q = (
        select(AwsSecurityFinding.severity_label, func.count())
        .where(AwsSecurityFinding.integration_id == integration_id)
        .group_by(AwsSecurityFinding.severity_label)
    )
    counts = {(label or "").upper(): n for label, n in (await s.execute(q)).all()}
    return FindingsSummary(
        total=sum(counts.values()),
        critical=counts.get("CRITICAL", 0),
        high=counts.get("HIGH", 0),
        medium=counts.get("MEDIUM", 0),
        low=counts.get("LOW", 0),
        informational=counts.get("INFORMATIONAL", 0),
    )


@router.get("/{integration_id}/aws/findings", response_model=Page[SecurityFindingOut], summary="Security Hub findings")
async def list_findings(
    integration_id: int,
    search: str | None = Query(None),
    region: str | None = Query(None),
    severity: str | None = Query(None),
    workflow_status: str | None = Query(None),
    compliance_status: str | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsSecurityFinding
    return await _page(s, m, SecurityFindingOut, integration_id, [
        _search(m, search, "title", "description", "product_name"),
        m.region == region if region else None,
        m.severity_label == severity.upper() if severity else None,
        m.workflow_status == workflow_status.upper() if workflow_status else None,
        m.compliance_status == compliance_status.upper() if compliance_status else None,
    ], (m.last_observed_at.desc(), m.id.desc()), limit, offset)


@router.get("/{integration_id}/aws/config-rules", response_model=Page[ConfigRuleOut], summary="Config rules")
async def list_config_rules(
    integration_id: int,
    search: str | None = Query(None),
    region: str | None = Query(None),
    compliance_type: str | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsConfigRule
    return await _page(s, m, ConfigRuleOut, integration_id, [
        _search(m, search, "config_rule_name", "description"),
        m.region == region if region else None,
        m.compliance_type == compliance_type.upper() if compliance_type else None,
    ], (m.config_rule_name,), limit, offset)


@router.get("/{integration_id}/aws/cloudtrail", response_model=Page[CloudTrailEventOut], summary="CloudTrail events")
async def list_cloudtrail_events(
    integration_id: int,
    search: str | None = Query(None),
    region: str | None = Query(None),
    is_root_action: bool | None = Query(None),
    is_sensitive_action: bool | None = Query(None),
    limit: int = Query(PAGE_DEFAULT, ge=1, le=PAGE_MAX),
    offset: int = Query(0, ge=0),
    s: AsyncSession = Depends(get_session),
):
    m = AwsCloudTrailEvent
    return await _page(s, m, CloudTrailEventOut, integration_id, [
        _search(m, search, "event_name", "event_source", "user_name"),
        m.region == region if region else None,
        m.is_root_action.is_(is_root_action) if is_root_action is not None else None,
        m.is_sensitive_action.is_(is_sensitive_action) if is_sensitive_action is not None else None,
    ], (m.event_time.desc(),), limit, offset)
