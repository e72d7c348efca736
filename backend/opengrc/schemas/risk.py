from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from opengrc.schemas.asset import LinkedControlOut

RISK_CATEGORY = r"^(strategic|operational|financial|compliance|technology|security|reputational|other)$"
RISK_SOURCE = r"^(internal|external|regulatory|third_party|technology|other)$"
RISK_STATUS = r"^(identified|assessed|treating|monitoring|accepted|closed)$"


class RiskOut(BaseModel):
    id: int
    code: str
    title: str
    description: str | None = None
    category: str | None = None
    source: str | None = None
    likelihood: int | None = None
    impact: int | None = None
    inherent_score: int | None = None
    residual_likelihood: int | None = None
    residual_impact: int | None = None
    residual_score: int | None = None
    risk_level: str
    status: str
    owner: str | None = None
    treatment_plan: str | None = None
    identified_at: datetime
    review_date: date | None = None
    linked_control_count: int = 0
    linked_controls: list[LinkedControlOut] = []
    created_at: datetime
    updated_at: datetime


class RiskCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, pattern=RISK_CATEGORY)
    source: str | None = Field(None, pattern=RISK_SOURCE)
    likelihood: int | None = Field(None, ge=1, le=5)
    impact: int | None = Field(None, ge=1, le=5)
    owner: str | None = Field(None, max_length=100)
    treatment_plan: str | None = None
    review_date: date | None = None


class RiskUpdate(BaseModel):
    code: str | None = Field(None, min_length=1, max_length=50)
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, pattern=RISK_CATEGORY)
    source: str | None = Field(None, pattern=RISK_SOURCE)
    likelihood: int | None = Field(None, ge=1, le=5)
    impact: int | None = Field(None, ge=1, le=5)
    residual_likelihood: int | None = Field(None, ge=1, le=5)
    residual_impact: int | None = Field(None, ge=1, le=5)
    status: str | None = Field(None, pattern=RISK_STATUS)
    owner: str | None = Field(None, max_length=100)
    treatment_plan: str | None = None
    review_date: date | None = None


class RiskStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_category: dict[str, int]
    high_risks: int
    medium_risks: int
    low_risks: int
    needs_review: int
    average_inherent_score: float
    average_residual_score: float


class HeatmapCell(BaseModel):
    likelihood: int
    impact: int
    count: int


class RiskHeatmap(BaseModel):
    cells: list[HeatmapCell]
    total_risks: int
    risks_with_scores: int
