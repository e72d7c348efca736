"""Initial schema: vendors, frameworks, controls, assets, risks, policies,
tasks, audit log, integrations and AWS inventory tables

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()))
    return cols


def _aws_common() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("integration_id", sa.Integer,
                  sa.ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("aws_account_id", sa.String(20), nullable=False),
    ]


def _synced() -> sa.Column:
    return sa.Column("last_synced_at", sa.DateTime, nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    # ── Audit ─────────────────────────────────────────────────────
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(100), index=True),
        sa.Column("module", sa.String(50), nullable=False, index=True),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("field_name", sa.String(100)),
        sa.Column("old_value", sa.Text),
        sa.Column("new_value", sa.Text),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("action IN ('create', 'update', 'delete')", name="ck_audit_log_action"),
    )
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_type", "entity_id"])

    # ── Vendors ───────────────────────────────────────────────────
    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("category", sa.String(50)),
        sa.Column("criticality", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("data_classification", sa.String(20), nullable=False, server_default="internal"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("website", sa.String(500)),
        sa.Column("primary_contact", sa.String(255)),
        sa.Column("primary_contact_email", sa.String(255)),
        sa.Column("contract_start", sa.Date),
        sa.Column("contract_end", sa.Date),
        sa.Column("last_risk_rating", sa.String(20)),
        sa.Column("last_assessment_date", sa.DateTime),
        sa.Column("next_assessment_date", sa.Date),
        *_timestamps(),
    )
    op.create_table(
        "vendor_assessments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vendor_id", sa.Integer,
                  sa.ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("assessment_type", sa.String(30), nullable=False, server_default="periodic"),
        sa.Column("risk_rating", sa.String(20)),
        sa.Column("findings", sa.Text),
        sa.Column("recommendations", sa.Text),
        sa.Column("assessed_by", sa.String(100)),
        sa.Column("assessed_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("next_assessment_date", sa.Date),
        *_timestamps(updated=False),
    )

    # ── Frameworks ────────────────────────────────────────────────
    op.create_table(
        "frameworks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("version", sa.String(50)),
        sa.Column("description", sa.Text),
        sa.Column("category", sa.String(100)),
        sa.Column("is_system", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_table(
        "framework_requirements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("framework_id", sa.Integer,
                  sa.ForeignKey("frameworks.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("parent_id", sa.Integer,
                  sa.ForeignKey("framework_requirements.id", ondelete="CASCADE")),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("category", sa.String(100)),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(updated=False),
    )

    # ── Controls ──────────────────────────────────────────────────
    op.create_table(
        "controls",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("control_type", sa.String(20), nullable=False, server_default="preventive"),
        sa.Column("frequency", sa.String(20), nullable=False, server_default="continuous"),
        sa.Column("status", sa.String(30), nullable=False, server_default="not_implemented"),
        sa.Column("owner", sa.String(100)),
        sa.Column("implementation_notes", sa.Text),
        *_timestamps(),
    )
    op.create_table(
        "control_requirement_mappings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("control_id", sa.Integer,
                  sa.ForeignKey("controls.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("requirement_id", sa.Integer,
                  sa.ForeignKey("framework_requirements.id", ondelete="CASCADE"), nullable=False, index=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("control_id", "requirement_id", name="uq_control_requirement"),
    )

    # ── Assets ────────────────────────────────────────────────────
    op.create_table(
        "assets",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("asset_type", sa.String(30)),
        sa.Column("category", sa.String(100)),
        sa.Column("classification", sa.String(20), nullable=False, server_default="internal"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("owner", sa.String(100)),
        sa.Column("location", sa.String(255)),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("mac_address", sa.String(17)),
        sa.Column("purchase_date", sa.Date),
        sa.Column("warranty_until", sa.Date),
        sa.Column("metadata", sa.JSON),
        sa.Column("lifecycle_stage", sa.String(30), nullable=False, server_default="active", index=True),
        sa.Column("commissioned_date", sa.Date),
        sa.Column("decommission_date", sa.Date),
        sa.Column("last_maintenance_date", sa.Date),
        sa.Column("next_maintenance_due", sa.Date),
        sa.Column("maintenance_frequency", sa.String(20)),
        sa.Column("end_of_life_date", sa.Date),
        sa.Column("end_of_support_date", sa.Date),
        sa.Column("integration_source", sa.String(100), index=True),
        sa.Column("external_id", sa.String(255), index=True),
        sa.Column("last_synced_at", sa.DateTime),
        *_timestamps(),
    )
    op.create_table(
        "asset_controls",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("asset_id", sa.Integer,
                  sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("control_id", sa.Integer,
                  sa.ForeignKey("controls.id", ondelete="CASCADE"), nullable=False, index=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("asset_id", "control_id", name="uq_asset_control"),
    )

    # ── Risks ─────────────────────────────────────────────────────
    op.create_table(
        "risks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("category", sa.String(30)),
        sa.Column("source", sa.String(30)),
        sa.Column("likelihood", sa.Integer),
        sa.Column("impact", sa.Integer),
        sa.Column("inherent_score", sa.Integer, index=True),
        sa.Column("residual_likelihood", sa.Integer),
        sa.Column("residual_impact", sa.Integer),
        sa.Column("residual_score", sa.Integer),
        sa.Column("status", sa.String(20), nullable=False, server_default="identified"),
        sa.Column("owner", sa.String(100)),
        sa.Column("treatment_plan", sa.Text),
        sa.Column("identified_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("review_date", sa.Date),
        *_timestamps(),
    )
    op.create_table(
        "risk_controls",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("risk_id", sa.Integer,
                  sa.ForeignKey("risks.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("control_id", sa.Integer,
                  sa.ForeignKey("controls.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("effectiveness", sa.String(30)),
        *_timestamps(updated=False),
        sa.UniqueConstraint("risk_id", "control_id", name="uq_risk_control"),
    )

    # ── Policies ──────────────────────────────────────────────────
    op.create_table(
        "policies",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50)),
        sa.Column("content", sa.Text),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("status", sa.String(30), nullable=False, server_default="draft"),
        sa.Column("owner", sa.String(100)),
        sa.Column("approver", sa.String(100)),
        sa.Column("approved_at", sa.DateTime),
        sa.Column("effective_date", sa.Date),
        sa.Column("review_date", sa.Date),
        sa.Column("template_id", sa.String(20)),
        *_timestamps(),
    )
    op.create_table(
        "policy_versions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("policy_id", sa.Integer,
                  sa.ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("content", sa.Text),
        sa.Column("change_summary", sa.Text),
        sa.Column("changed_by", sa.String(100)),
        *_timestamps(updated=False),
    )
    op.create_table(
        "policy_acknowledgments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("policy_id", sa.Integer,
                  sa.ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("policy_version", sa.Integer, nullable=False),
        sa.Column("acknowledged_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("policy_id", "user_id", "policy_version", name="uq_policy_ack_user_version"),
    )

    # ── Tasks ─────────────────────────────────────────────────────
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("task_type", sa.String(30), nullable=False, server_default="general"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("assignee", sa.String(100)),
        sa.Column("due_at", sa.DateTime),
        sa.Column("completed_at", sa.DateTime),
        sa.Column("related_entity_type", sa.String(30)),
        sa.Column("related_entity_id", sa.Integer),
        *_timestamps(),
    )
    op.create_table(
        "task_comments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("task_id", sa.Integer,
                  sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("author", sa.String(100)),
        sa.Column("content", sa.Text, nullable=False),
        *_timestamps(updated=False),
    )

    # ── Integrations ──────────────────────────────────────────────
    op.create_table(
        "integrations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("integration_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="active"),
        sa.Column("last_sync_at", sa.DateTime),
        *_timestamps(updated=False),
    )

    # ── AWS inventory (collector-owned) ───────────────────────────
    op.create_table(
        "aws_s3_buckets",
        *_aws_common(),
        sa.Column("bucket_name", sa.String(255), nullable=False),
        sa.Column("region", sa.String(50)),
        sa.Column("creation_date", sa.DateTime),
        sa.Column("encryption_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("encryption_type", sa.String(50)),
        sa.Column("versioning_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("logging_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("public_access_block", sa.JSON),
        sa.Column("tags", sa.JSON),
        _synced(),
    )
    op.create_table(
        "aws_ec2_instances",
        *_aws_common(),
        sa.Column("region", sa.String(50), nullable=False),
        sa.Column("instance_id", sa.String(50), nullable=False),
        sa.Column("instance_type", sa.String(50)),
        sa.Column("state", sa.String(50)),
        sa.Column("private_ip", sa.String(50)),
        sa.Column("public_ip", sa.String(50)),
        sa.Column("vpc_id", sa.String(50)),
        sa.Column("subnet_id", sa.String(50)),
        sa.Column("security_groups", sa.JSON),
        sa.Column("launch_time", sa.DateTime),
        sa.Column("platform", sa.String(50)),
        sa.Column("monitoring_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("tags", sa.JSON),
        _synced(),
    )
    op.create_table(
        "aws_rds_instances",
        *_aws_common(),
        sa.Column("region", sa.String(50), nullable=False),
        sa.Column("db_instance_identifier", sa.String(255), nullable=False),
        sa.Column("db_instance_class", sa.String(50)),
        sa.Column("engine", sa.String(50)),
        sa.Column("engine_version", sa.String(50)),
        sa.Column("status", sa.String(50)),
        sa.Column("publicly_accessible", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("storage_encrypted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("multi_az", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("backup_retention_period", sa.Integer, nullable=False, server_default="0"),
        sa.Column("deletion_protection", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("tags", sa.JSON),
        _synced(),
    )
    op.create_table(
        "aws_iam_users",
        *_aws_common(),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("user_name", sa.String(255), nullable=False),
        sa.Column("arn", sa.Text, nullable=False),
        sa.Column("created_date", sa.DateTime),
        sa.Column("password_last_used", sa.DateTime),
        sa.Column("mfa_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("access_keys", sa.JSON),
        sa.Column("attached_policies", sa.JSON),
        sa.Column("groups", sa.JSON),
        sa.Column("risk_score", sa.Integer, nullable=False, server_default="0"),
        _synced(),
    )
    op.create_table(
        "aws_iam_roles",
        *_aws_common(),
        sa.Column("role_id", sa.String(100), nullable=False),
        sa.Column("role_name", sa.String(255), nullable=False),
        sa.Column("arn", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("attached_policies", sa.JSON),
        sa.Column("last_used_at", sa.DateTime),
        sa.Column("is_service_role", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("allows_cross_account", sa.Boolean, nullable=False, server_default=sa.false()),
        _synced(),
    )
    op.create_table(
        "aws_iam_policies",
        *_aws_common(),
        sa.Column("policy_id", sa.String(100), nullable=False),
        sa.Column("policy_name", sa.String(255), nullable=False),
        sa.Column("arn", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("attachment_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_aws_managed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("allows_admin_access", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("uses_wildcard_resources", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("risk_score", sa.Integer, nullable=False, server_default="0"),
        _synced(),
    )
    op.create_table(
        "aws_security_findings",
        *_aws_common(),
        sa.Column("region", sa.String(50), nullable=False),
        sa.Column("finding_id", sa.String(512), nullable=False),
        sa.Column("product_name", sa.String(255)),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("severity_label", sa.String(50), nullable=False, index=True),
        sa.Column("workflow_status", sa.String(50), nullable=False, server_default="NEW"),
        sa.Column("record_state", sa.String(50), nullable=False, server_default="ACTIVE"),
        sa.Column("compliance_status", sa.String(50)),
        sa.Column("remediation_text", sa.Text),
        sa.Column("remediation_url", sa.Text),
        sa.Column("first_observed_at", sa.DateTime),
        sa.Column("last_observed_at", sa.DateTime),
        _synced(),
    )
    op.create_table(
        "aws_config_rules",
        *_aws_common(),
        sa.Column("region", sa.String(50), nullable=False),
        sa.Column("config_rule_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("source_owner", sa.String(50)),
        sa.Column("compliance_type", sa.String(50), nullable=False),
        sa.Column("compliant_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("non_compliant_count", sa.Integer, nullable=False, server_default="0"),
        _synced(),
    )
    op.create_table(
        "aws_cloudtrail_events",
        *_aws_common(),
        sa.Column("region", sa.String(50), nullable=False),
        sa.Column("event_id", sa.String(100), nullable=False),
        sa.Column("event_name", sa.String(255), nullable=False),
        sa.Column("event_source", sa.String(255), nullable=False),
        sa.Column("event_time", sa.DateTime, nullable=False, index=True),
        sa.Column("user_name", sa.String(255)),
        sa.Column("source_ip_address", sa.String(50)),
        sa.Column("error_code", sa.String(100)),
        sa.Column("is_root_action", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_sensitive_action", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("risk_level", sa.String(20), nullable=False, server_default="LOW"),
        _synced(),
    )


def downgrade() -> None:
    for table in (
        "aws_cloudtrail_events", "aws_config_rules", "aws_security_findings",
        "aws_iam_policies", "aws_iam_roles", "aws_iam_users",
        "aws_rds_instances", "aws_ec2_instances", "aws_s3_buckets",
        "integrations",
        "task_comments", "tasks",
        "policy_acknowledgments", "policy_versions", "policies",
        "risk_controls", "risks",
        "asset_controls", "assets",
        "control_requirement_mappings", "controls",
        "framework_requirements", "frameworks",
        "vendor_assessments", "vendors",
        "audit_log",
    ):
        op.drop_table(table)
