from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# ═══ Requirements ═══

class RequirementOut(BaseModel):
    id: int
    framework_id: int
    parent_id: int | None = None
    code: str
    name: str
    description: str | None = None
    category: str | None = None
    sort_order: int = 0
    created_at: datetime
    model_config = {"from_attributes": True}


class RequirementTreeOut(RequirementOut):
    children: list[RequirementTreeOut] = []


RequirementTreeOut.model_rebuild()


class RequirementCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    category: str | None = Field(None, max_length=100)
    parent_id: int | None = None
    sort_order: int = 0


class RequirementUpdate(BaseModel):
    code: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    category: str | None = Field(None, max_length=100)
    parent_id: int | None = None
    sort_order: int | None = None


class RequirementImportResult(BaseModel):
    created: int
    skipped: int
    errors: list[str] = []


# ═══ Frameworks ═══

class FrameworkOut(BaseModel):
    id: int
    name: str
    version: str | None = None
    description: str | None = None
    category: str | None = None
    is_system: bool = False
    requirement_count: int = 0
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class FrameworkCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    version: str | None = Field(None, max_length=50)
    description: str | None = None
    category: str | None = Field(None, max_length=100)
    is_system: bool = False


class FrameworkUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    version: str | None = Field(None, max_length=50)
    description: str | None = None
    category: str | None = Field(None, max_length=100)


# ═══ Gap analysis ═══

class CategoryCoverage(BaseModel):
    category: str
    total: int
    covered: int
    percentage: float


class RequirementCoverage(BaseModel):
    id: int
    code: str
    name: str
    category: str | None = None
    control_count: int
    is_covered: bool


class GapAnalysisOut(BaseModel):
    framework_id: int
    framework_name: str
    total_requirements: int
    covered: int
    uncovered: int
    coverage_percentage: float
    by_category: list[CategoryCoverage]
    requirements: list[RequirementCoverage]
