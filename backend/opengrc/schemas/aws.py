"""Read-only views over collector-populated integration data."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class IntegrationOut(BaseModel):
    id: int
    name: str
    integration_type: str
    status: str
    last_sync_at: datetime | None = None
    created_at: datetime
    model_config = {"from_attributes": True}


class Page(BaseModel, Generic[T]):
    data: list[T]
    total: int
    limit: int
    offset: int


class _AwsRow(BaseModel):
    id: int
    integration_id: int
    aws_account_id: str
    last_synced_at: datetime
    risk_flags: list[str] = []
    model_config = {"from_attributes": True}


class S3BucketOut(_AwsRow):
    bucket_name: str
    region: str | None = None
    creation_date: datetime | None = None
    encryption_enabled: bool
    encryption_type: str | None = None
    versioning_enabled: bool
    logging_enabled: bool
    is_public: bool
    public_access_block: dict[str, Any] | None = None
    tags: dict[str, Any] | None = None


class Ec2InstanceOut(_AwsRow):
    region: str
    instance_id: str
    instance_type: str | None = None
    state: str | None = None
    private_ip: str | None = None
    public_ip: str | None = None
    vpc_id: str | None = None
    subnet_id: str | None = None
    security_groups: list[Any] | None = None
    launch_time: datetime | None = None
    platform: str | None = None
    monitoring_enabled: bool
    is_public: bool
    tags: dict[str, Any] | None = None


class RdsInstanceOut(_AwsRow):
    region: str
    db_instance_identifier: str
    db_instance_class: str | None = None
    engine: str | None = None
    engine_version: str | None = None
    status: str | None = None
    publicly_accessible: bool
    storage_encrypted: bool
    multi_az: bool
    backup_retention_period: int
    deletion_protection: bool


class IamUserOut(_AwsRow):
    user_id: str
    user_name: str
    arn: str
    created_date: datetime | None = None
    password_last_used: datetime | None = None
    mfa_enabled: bool
    access_keys: list[Any] | None = None
    attached_policies: list[Any] | None = None
    groups: list[Any] | None = None
    risk_score: int


class IamRoleOut(_AwsRow):
    role_id: str
    role_name: str
    arn: str
    description: str | None = None
    attached_policies: list[Any] | None = None
    last_used_at: datetime | None = None
    is_service_role: bool
    allows_cross_account: bool


class IamPolicyOut(_AwsRow):
    policy_id: str
    policy_name: str
    arn: str
    description: str | None = None
    attachment_count: int
    is_aws_managed: bool
    allows_admin_access: bool
    uses_wildcard_resources: bool
    risk_score: int


class SecurityFindingOut(_AwsRow):
    region: str
    finding_id: str
    product_name: str | None = None
    title: str
    description: str | None = None
    severity_label: str
    workflow_status: str
    record_state: str
    compliance_status: str | None = None
    remediation_text: str | None = None
    remediation_url: str | None = None
    first_observed_at: datetime | None = None
    last_observed_at: datetime | None = None


class ConfigRuleOut(_AwsRow):
    region: str
    config_rule_name: str
    description: str | None = None
    source_owner: str | None = None
    compliance_type: str
    compliant_count: int
    non_compliant_count: int


class CloudTrailEventOut(_AwsRow):
    region: str
    event_id: str
    event_name: str
    event_source: str
    event_time: datetime
    user_name: str | None = None
    source_ip_address: str | None = None
    error_code: str | None = None
    is_root_action: bool
    is_sensitive_action: bool
    risk_level: str


class FindingsSummary(BaseModel):
    total: int
    critical: int
    high: int
    medium: int
    low: int
    informational: int


class AwsOverview(BaseModel):
    integration_id: int
    s3_buckets: int
    public_buckets: int
    ec2_instances: int
    rds_instances: int
    iam_users: int
    users_without_mfa: int
    iam_roles: int
    iam_policies: int
    findings: int
    critical_findings: int
    high_findings: int
    config_rules: int
    non_compliant_rules: int
    cloudtrail_events: int
    last_synced_at: datetime | None = None
