from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

CONTROL_TYPE = r"^(preventive|detective|corrective)$"
FREQUENCY = r"^(continuous|daily|weekly|monthly|quarterly|annual)$"
CONTROL_STATUS = r"^(not_implemented|in_progress|implemented|not_applicable)$"


class MappedRequirementOut(BaseModel):
    id: int
    framework_id: int
    framework_name: str
    code: str
    name: str


class LinkedAssetOut(BaseModel):
    id: int
    name: str
    asset_type: str | None = None


class ControlOut(BaseModel):
    id: int
    code: str
    name: str
    description: str | None = None
    control_type: str
    frequency: str
    status: str
    owner: str | None = None
    implementation_notes: str | None = None
    requirement_count: int = 0
    mapped_requirements: list[MappedRequirementOut] = []
    linked_assets: list[LinkedAssetOut] = []
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class ControlCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    control_type: str = Field("preventive", pattern=CONTROL_TYPE)
    frequency: str = Field("continuous", pattern=FREQUENCY)
    status: str = Field("not_implemented", pattern=CONTROL_STATUS)
    owner: str | None = Field(None, max_length=100)
    implementation_notes: str | None = None


class ControlUpdate(BaseModel):
    code: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    control_type: str | None = Field(None, pattern=CONTROL_TYPE)
    frequency: str | None = Field(None, pattern=FREQUENCY)
    status: str | None = Field(None, pattern=CONTROL_STATUS)
    owner: str | None = Field(None, max_length=100)
    implementation_notes: str | None = None


class ControlStats(BaseModel):
    total: int
    implemented: int
    in_progress: int
    not_implemented: int
    not_applicable: int
    implementation_percentage: float
