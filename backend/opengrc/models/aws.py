"""Read-only AWS inventory and finding tables, populated by the AWS collector."""
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AwsS3Bucket(Base):
    __tablename__ = "aws_s3_buckets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    bucket_name: Mapped[str] = mapped_column(String(255), nullable=False)
    region: Mapped[str | None] = mapped_column(String(50))
    creation_date: Mapped[datetime | None] = mapped_column(DateTime)
    encryption_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    encryption_type: Mapped[str | None] = mapped_column(String(50))
    versioning_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    logging_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    public_access_block: Mapped[dict | None] = mapped_column(JSON)
    tags: Mapped[dict | None] = mapped_column(JSON)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsEc2Instance(Base):
    __tablename__ = "aws_ec2_instances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    region: Mapped[str] = mapped_column(String(50), nullable=False)
    instance_id: Mapped[str] = mapped_column(String(50), nullable=False)
    instance_type: Mapped[str | None] = mapped_column(String(50))
    state: Mapped[str | None] = mapped_column(String(50))
    private_ip: Mapped[str | None] = mapped_column(String(50))
    public_ip: Mapped[str | None] = mapped_column(String(50))
    vpc_id: Mapped[str | None] = mapped_column(String(50))
    subnet_id: Mapped[str | None] = mapped_column(String(50))
    security_groups: Mapped[list | None] = mapped_column(JSON)
    launch_time: Mapped[datetime | None] = mapped_column(DateTime)
    platform: Mapped[str | None] = mapped_column(String(50))
    monitoring_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tags: Mapped[dict | None] = mapped_column(JSON)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsRdsInstance(Base):
    __tablename__ = "aws_rds_instances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    region: Mapped[str] = mapped_column(String(50), nullable=False)
    db_instance_identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    db_instance_class: Mapped[str | None] = mapped_column(String(50))
    engine: Mapped[str | None] = mapped_column(String(50))
    engine_version: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[str | None] = mapped_column(String(50))
    publicly_accessible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    storage_encrypted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    multi_az: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    backup_retention_period: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deletion_protection: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tags: Mapped[dict | None] = mapped_column(JSON)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsIamUser(Base):
    __tablename__ = "aws_iam_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    arn: Mapped[str] = mapped_column(Text, nullable=False)
    created_date: Mapped[datetime | None] = mapped_column(DateTime)
    password_last_used: Mapped[datetime | None] = mapped_column(DateTime)
    mfa_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    access_keys: Mapped[list | None] = mapped_column(JSON)
    attached_policies: Mapped[list | None] = mapped_column(JSON)
    groups: Mapped[list | None] = mapped_column(JSON)
    risk_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsIamRole(Base):
    __tablename__ = "aws_iam_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    role_id: Mapped[str] = mapped_column(String(100), nullable=False)
    role_name: Mapped[str] = mapped_column(String(255), nullable=False)
    arn: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    attached_policies: Mapped[list | None] = mapped_column(JSON)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime)
    is_service_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    allows_cross_account: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsIamPolicy(Base):
    __tablename__ = "aws_iam_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    policy_id: Mapped[str] = mapped_column(String(100), nullable=False)
    policy_name: Mapped[str] = mapped_column(String(255), nullable=False)
    arn: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    attachment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_aws_managed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    allows_admin_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    uses_wildcard_resources: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsSecurityFinding(Base):
    __tablename__ = "aws_security_findings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    region: Mapped[str] = mapped_column(String(50), nullable=False)
    finding_id: Mapped[str] = mapped_column(String(512), nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(255))
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    severity_label: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    workflow_status: Mapped[str] = mapped_column(String(50), default="NEW", nullable=False)
    record_state: Mapped[str] = mapped_column(String(50), default="ACTIVE", nullable=False)
    compliance_status: Mapped[str | None] = mapped_column(String(50))
    remediation_text: Mapped[str | None] = mapped_column(Text)
    remediation_url: Mapped[str | None] = mapped_column(Text)
    first_observed_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_observed_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsConfigRule(Base):
    __tablename__ = "aws_config_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    region: Mapped[str] = mapped_column(String(50), nullable=False)
    config_rule_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    source_owner: Mapped[str | None] = mapped_column(String(50))
    compliance_type: Mapped[str] = mapped_column(String(50), nullable=False)
    compliant_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    non_compliant_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class AwsCloudTrailEvent(Base):
    __tablename__ = "aws_cloudtrail_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True)
    aws_account_id: Mapped[str] = mapped_column(String(20), nullable=False)
    region: Mapped[str] = mapped_column(String(50), nullable=False)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_source: Mapped[str] = mapped_column(String(255), nullable=False)
    event_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    user_name: Mapped[str | None] = mapped_column(String(255))
    source_ip_address: Mapped[str | None] = mapped_column(String(50))
    error_code: Mapped[str | None] = mapped_column(String(100))
    is_root_action: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_sensitive_action: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    risk_level: Mapped[str] = mapped_column(String(20), default="LOW", nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
