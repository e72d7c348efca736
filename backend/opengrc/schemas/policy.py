from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

POLICY_STATUS = r"^(draft|pending_approval|published|archived)$"


class PolicyOut(BaseModel):
    id: int
    code: str
    title: str
    category: str | None = None
    content: str | None = None
    version: int
    status: str
    owner: str | None = None
    approver: str | None = None
    approved_at: datetime | None = None
    effective_date: date | None = None
    review_date: date | None = None
    template_id: str | None = None
    acknowledgment_count: int = 0
    created_at: datetime
    updated_at: datetime


class PolicyCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=255)
    category: str | None = Field(None, max_length=50)
    content: str | None = None
    status: str = Field("draft", pattern=POLICY_STATUS)
    owner: str | None = Field(None, max_length=100)
    approver: str | None = Field(None, max_length=100)
    effective_date: date | None = None
    review_date: date | None = None


class PolicyUpdate(BaseModel):
    code: str | None = Field(None, min_length=1, max_length=50)
    title: str | None = Field(None, min_length=1, max_length=255)
    category: str | None = Field(None, max_length=50)
    content: str | None = None
    status: str | None = Field(None, pattern=POLICY_STATUS)
    owner: str | None = Field(None, max_length=100)
    approver: str | None = Field(None, max_length=100)
    effective_date: date | None = None
    review_date: date | None = None
    change_summary: str | None = None


class PolicyFromTemplate(BaseModel):
    code: str | None = Field(None, min_length=1, max_length=50)
    owner: str | None = Field(None, max_length=100)


class PolicyVersionOut(BaseModel):
    id: int
    policy_id: int
    version: int
    content: str | None = None
    change_summary: str | None = None
    changed_by: str | None = None
    created_at: datetime
    model_config = {"from_attributes": True}


class AcknowledgeRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=100)


class PolicyAcknowledgmentOut(BaseModel):
    id: int
    policy_id: int
    user_id: str
    policy_version: int
    acknowledged_at: datetime
    model_config = {"from_attributes": True}


class PolicyStats(BaseModel):
    total: int
    published: int
    draft: int
    pending_approval: int
    archived: int
    needs_review: int
    by_category: dict[str, int]


class AcknowledgmentStatus(BaseModel):
    policy_id: int
    user_id: str
    version: int
    acknowledged: bool
