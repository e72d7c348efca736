from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

ASSET_TYPE = r"^(hardware|software|data|network|cloud|physical|people|other)$"
CLASSIFICATION = r"^(public|internal|confidential|restricted)$"
ASSET_STATUS = r"^(active|inactive|decommissioned|under_review|retired)$"
LIFECYCLE_STAGE = r"^(procurement|deployment|active|maintenance|decommissioning|decommissioned)$"
MAINTENANCE_FREQUENCY = r"^(monthly|quarterly|semi_annual|annual)$"


class LinkedControlOut(BaseModel):
    id: int
    code: str
    name: str
    status: str


class AssetOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    asset_type: str | None = None
    category: str | None = None
    classification: str
    status: str
    owner: str | None = None
    location: str | None = None
    ip_address: str | None = None
    mac_address: str | None = None
    purchase_date: date | None = None
    warranty_until: date | None = None
    metadata: dict | None = None
    lifecycle_stage: str
    commissioned_date: date | None = None
    decommission_date: date | None = None
    last_maintenance_date: date | None = None
    next_maintenance_due: date | None = None
    maintenance_frequency: str | None = None
    end_of_life_date: date | None = None
    end_of_support_date: date | None = None
    integration_source: str | None = None
    external_id: str | None = None
    last_synced_at: datetime | None = None
    linked_control_count: int = 0
    linked_controls: list[LinkedControlOut] = []
    created_at: datetime
    updated_at: datetime


class _AssetFields(BaseModel):
    description: str | None = None
    category: str | None = Field(None, max_length=100)
    owner: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=255)
    ip_address: str | None = Field(None, max_length=45)
    mac_address: str | None = Field(None, max_length=17)
    purchase_date: date | None = None
    warranty_until: date | None = None
    metadata: dict | None = None
    commissioned_date: date | None = None
    decommission_date: date | None = None
    last_maintenance_date: date | None = None
    next_maintenance_due: date | None = None
    maintenance_frequency: str | None = Field(None, pattern=MAINTENANCE_FREQUENCY)
    end_of_life_date: date | None = None
    end_of_support_date: date | None = None
    integration_source: str | None = Field(None, max_length=100)
    external_id: str | None = Field(None, max_length=255)
    last_synced_at: datetime | None = None


class AssetCreate(_AssetFields):
    name: str = Field(..., min_length=1, max_length=255)
    asset_type: str | None = Field(None, pattern=ASSET_TYPE)
    classification: str = Field("internal", pattern=CLASSIFICATION)
    status: str = Field("active", pattern=ASSET_STATUS)
    lifecycle_stage: str = Field("active", pattern=LIFECYCLE_STAGE)


class AssetUpdate(_AssetFields):
    name: str | None = Field(None, min_length=1, max_length=255)
    asset_type: str | None = Field(None, pattern=ASSET_TYPE)
    classification: str | None = Field(None, pattern=CLASSIFICATION)
    status: str | None = Field(None, pattern=ASSET_STATUS)
    lifecycle_stage: str | None = Field(None, pattern=LIFECYCLE_STAGE)


class AssetStats(BaseModel):
    total: int
    by_type: dict[str, int]
    by_classification: dict[str, int]
    by_status: dict[str, int]
    by_lifecycle_stage: dict[str, int]
    warranty_expiring_soon: int
    maintenance_due: int
