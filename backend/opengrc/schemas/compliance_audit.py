"""Pydantic schemas for audit engagements, their requests and findings."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

AUDIT_TYPE = r"^(internal|external|certification|compliance|readiness)$"
AUDIT_STATUS = r"^(planning|in_progress|fieldwork|reporting|completed|cancelled)$"
REQUEST_STATUS = r"^(open|in_progress|responded|closed)$"
FINDING_STATUS = r"^(open|in_remediation|closed)$"


# ═══ Requests ═══

class AuditRequestOut(BaseModel):
    id: int
    audit_id: int
    request_type: str | None = None
    title: str
    description: str | None = None
    status: str
    assigned_to: str | None = None
    due_at: datetime | None = None
    is_overdue: bool = False
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class AuditRequestCreate(BaseModel):
    request_type: str | None = Field(None, max_length=100)
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    assigned_to: str | None = Field(None, max_length=100)
    due_at: datetime | None = None


class AuditRequestUpdate(BaseModel):
    request_type: str | None = Field(None, max_length=100)
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    status: str | None = Field(None, pattern=REQUEST_STATUS)
    assigned_to: str | None = Field(None, max_length=100)
    due_at: datetime | None = None


# ═══ Findings ═══

class AuditFindingOut(BaseModel):
    id: int
    audit_id: int
    finding_type: str | None = None
    title: str
    description: str | None = None
    recommendation: str | None = None
    status: str
    remediation_plan: str | None = None
    remediation_due: date | None = None
    remediation_overdue: bool = False
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class AuditFindingCreate(BaseModel):
    finding_type: str | None = Field(None, max_length=50)
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    recommendation: str | None = None
    remediation_plan: str | None = None
    remediation_due: date | None = None


class AuditFindingUpdate(BaseModel):
    finding_type: str | None = Field(None, max_length=50)
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    recommendation: str | None = None
    status: str | None = Field(None, pattern=FINDING_STATUS)
    remediation_plan: str | None = None
    remediation_due: date | None = None


# ═══ Audit ═══

class AuditOut(BaseModel):
    id: int
    name: str
    framework_id: int | None = None
    framework_name: str | None = None
    audit_type: str | None = None
    auditor_firm: str | None = None
    auditor_contact: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    status: str
    request_count: int = 0
    open_requests: int = 0
    finding_count: int = 0
    open_findings: int = 0
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class AuditCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    framework_id: int | None = None
    audit_type: str | None = Field(None, pattern=AUDIT_TYPE)
    auditor_firm: str | None = Field(None, max_length=255)
    auditor_contact: str | None = Field(None, max_length=255)
    period_start: date | None = None
    period_end: date | None = None


class AuditUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    framework_id: int | None = None
    audit_type: str | None = Field(None, pattern=AUDIT_TYPE)
    auditor_firm: str | None = Field(None, max_length=255)
    auditor_contact: str | None = Field(None, max_length=255)
    period_start: date | None = None
    period_end: date | None = None
    status: str | None = Field(None, pattern=AUDIT_STATUS)


class AuditStats(BaseModel):
    total: int
    in_progress: int
    completed: int
    by_type: dict[str, int]
    open_findings: int
    overdue_requests: int
