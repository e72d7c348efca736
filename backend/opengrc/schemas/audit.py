from datetime import datetime

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: int
    user_id: str | None = None
    module: str
    action: str
    entity_type: str
    entity_id: int
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    ip_address: str | None = None
    created_at: datetime
    model_config = {"from_attributes": True}


class EntityHistoryOut(BaseModel):
    """Chronological trail of a single entity, oldest change first."""

    entity_type: str
    entity_id: int
    created_by: str | None = None
    last_changed_by: str | None = None
    last_changed_at: datetime | None = None
    deleted: bool = False
    entries: list[AuditLogOut]
