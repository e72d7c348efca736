from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from opengrc.schemas.asset import LinkedControlOut

EVIDENCE_TYPE = r"^(document|screenshot|log|automated|config|report)$"
EVIDENCE_SOURCE = r"^(manual|aws|github|okta|azure|gcp|datadog|other)$"


class EvidenceOut(BaseModel):
    id: int
    title: str
    description: str | None = None
    evidence_type: str
    source: str
    source_reference: str | None = None
    file_path: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    collected_at: datetime
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    uploaded_by: str | None = None
    is_expired: bool = False
    linked_control_count: int = 0
    linked_controls: list[LinkedControlOut] = []
    created_at: datetime
    model_config = {"from_attributes": True}


class EvidenceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    evidence_type: str = Field("document", pattern=EVIDENCE_TYPE)
    source: str = Field("manual", pattern=EVIDENCE_SOURCE)
    source_reference: str | None = Field(None, max_length=500)
    file_path: str | None = Field(None, max_length=500)
    file_size: int | None = Field(None, ge=0)
    mime_type: str | None = Field(None, max_length=100)
    collected_at: datetime | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    uploaded_by: str | None = Field(None, max_length=100)


class EvidenceUpdate(BaseModel):
    # file fields are fixed once the artefact is stored
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    evidence_type: str | None = Field(None, pattern=EVIDENCE_TYPE)
    source: str | None = Field(None, pattern=EVIDENCE_SOURCE)
    source_reference: str | None = Field(None, max_length=500)
    valid_from: datetime | None = None
    valid_until: datetime | None = None


class EvidenceStats(BaseModel):
    total: int
    by_type: dict[str, int]
    by_source: dict[str, int]
    expiring_soon: int
    expired: int
