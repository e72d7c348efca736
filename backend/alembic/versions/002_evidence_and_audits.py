"""Evidence library with control links; audit engagements, requests and findings

Revision ID: 002_evidence_and_audits
Revises: 001_initial_schema
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "002_evidence_and_audits"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()))
    return cols


def upgrade() -> None:
    # ── Evidence ──────────────────────────────────────────────────
    op.create_table(
        "evidence",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("evidence_type", sa.String(50), nullable=False, server_default="document", index=True),
        sa.Column("source", sa.String(50), nullable=False, server_default="manual", index=True),
        sa.Column("source_reference", sa.String(500)),
        sa.Column("file_path", sa.String(500)),
        sa.Column("file_size", sa.BigInteger),
        sa.Column("mime_type", sa.String(100)),
        sa.Column("collected_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("valid_from", sa.DateTime),
        sa.Column("valid_until", sa.DateTime),
        sa.Column("uploaded_by", sa.String(100)),
        *_timestamps(updated=False),
    )
    op.create_table(
        "evidence_controls",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("evidence_id", sa.Integer,
                  sa.ForeignKey("evidence.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("control_id", sa.Integer,
                  sa.ForeignKey("controls.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("linked_by", sa.String(100)),
        sa.Column("linked_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("evidence_id", "control_id", name="uq_evidence_control"),
    )

    # ── Audits ────────────────────────────────────────────────────
    op.create_table(
        "audits",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("framework_id", sa.Integer,
                  sa.ForeignKey("frameworks.id", ondelete="SET NULL"), index=True),
        sa.Column("audit_type", sa.String(50)),
        sa.Column("auditor_firm", sa.String(255)),
        sa.Column("auditor_contact", sa.String(255)),
        sa.Column("period_start", sa.Date),
        sa.Column("period_end", sa.Date),
        sa.Column("status", sa.String(50), nullable=False, server_default="planning"),
        *_timestamps(),
    )
    op.create_table(
        "audit_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("audit_id", sa.Integer,
                  sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("request_type", sa.String(100)),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("status", sa.String(50), nullable=False, server_default="open"),
        sa.Column("assigned_to", sa.String(100)),
        sa.Column("due_at", sa.DateTime),
        *_timestamps(),
    )
    op.create_table(
        "audit_findings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("audit_id", sa.Integer,
                  sa.ForeignKey("audits.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("finding_type", sa.String(50)),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("recommendation", sa.Text),
        sa.Column("status", sa.String(50), nullable=False, server_default="open"),
        sa.Column("remediation_plan", sa.Text),
        sa.Column("remediation_due", sa.Date),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in ("audit_findings", "audit_requests", "audits", "evidence_controls", "evidence"):
        op.drop_table(table)
