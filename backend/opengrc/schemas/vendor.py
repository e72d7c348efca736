"""Pydantic schemas for the vendor (TPRM) module."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

CRITICALITY = r"^(critical|high|medium|low)$"
DATA_CLASSIFICATION = r"^(public|internal|confidential|restricted)$"
VENDOR_STATUS = r"^(active|inactive|under_review|terminated)$"
ASSESSMENT_TYPE = r"^(initial|periodic|annual|incident|renewal|other)$"
RISK_RATING = r"^(critical|high|medium|low)$"


# ═══ Vendor Assessments ═══

class VendorAssessmentOut(BaseModel):
    id: int
    vendor_id: int
    assessment_type: str
    risk_rating: str | None = None
    findings: str | None = None
    recommendations: str | None = None
    assessed_by: str | None = None
    assessed_at: datetime
    next_assessment_date: date | None = None
    created_at: datetime
    model_config = {"from_attributes": True}


class VendorAssessmentCreate(BaseModel):
    assessment_type: str = Field("periodic", pattern=ASSESSMENT_TYPE)
    risk_rating: str | None = Field(None, pattern=RISK_RATING)
    findings: str | None = None
    recommendations: str | None = None
    assessed_by: str | None = Field(None, max_length=100)
    assessed_at: datetime | None = None
    next_assessment_date: date | None = None


# ═══ Vendor ═══

class VendorOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    category: str | None = None
    criticality: str
    data_classification: str
    status: str
    website: str | None = None
    primary_contact: str | None = None
    primary_contact_email: str | None = None
    contract_start: date | None = None
    contract_end: date | None = None
    last_risk_rating: str | None = None
    last_assessment_date: datetime | None = None
    next_assessment_date: date | None = None
    assessment_count: int = 0
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, max_length=50)
    criticality: str = Field("medium", pattern=CRITICALITY)
    data_classification: str = Field("internal", pattern=DATA_CLASSIFICATION)
    status: str = Field("active", pattern=VENDOR_STATUS)
    website: str | None = Field(None, max_length=500)
    primary_contact: str | None = Field(None, max_length=255)
    primary_contact_email: str | None = Field(None, max_length=255)
    contract_start: date | None = None
    contract_end: date | None = None


class VendorUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, max_length=50)
    criticality: str | None = Field(None, pattern=CRITICALITY)
    data_classification: str | None = Field(None, pattern=DATA_CLASSIFICATION)
    status: str | None = Field(None, pattern=VENDOR_STATUS)
    website: str | None = Field(None, max_length=500)
    primary_contact: str | None = Field(None, max_length=255)
    primary_contact_email: str | None = Field(None, max_length=255)
    contract_start: date | None = None
    contract_end: date | None = None


class VendorStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_criticality: dict[str, int]
    by_category: dict[str, int]
    contracts_expiring_soon: int
    needs_assessment: int
