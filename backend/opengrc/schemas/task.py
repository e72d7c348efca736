from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

TASK_TYPE = r"^(control_test|evidence_collection|review|remediation|general)$"
TASK_PRIORITY = r"^(low|medium|high|critical)$"
TASK_STATUS = r"^(open|in_progress|completed)$"


class TaskOut(BaseModel):
    id: int
    title: str
    description: str | None = None
    task_type: str
    priority: str
    status: str
    assignee: str | None = None
    due_at: datetime | None = None
    completed_at: datetime | None = None
    related_entity_type: str | None = None
    related_entity_id: int | None = None
    is_overdue: bool = False
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    task_type: str = Field("general", pattern=TASK_TYPE)
    priority: str = Field("medium", pattern=TASK_PRIORITY)
    status: str = Field("open", pattern=TASK_STATUS)
    assignee: str | None = Field(None, max_length=100)
    due_at: datetime | None = None
    related_entity_type: str | None = Field(None, max_length=30)
    related_entity_id: int | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    task_type: str | None = Field(None, pattern=TASK_TYPE)
    priority: str | None = Field(None, pattern=TASK_PRIORITY)
    status: str | None = Field(None, pattern=TASK_STATUS)
    assignee: str | None = Field(None, max_length=100)
    due_at: datetime | None = None
    related_entity_type: str | None = Field(None, max_length=30)
    related_entity_id: int | None = None


class TaskCommentOut(BaseModel):
    id: int
    task_id: int
    author: str | None = None
    content: str
    created_at: datetime
    model_config = {"from_attributes": True}


class TaskCommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    author: str | None = Field(None, max_length=100)


class TaskStats(BaseModel):
    total: int
    open: int
    in_progress: int
    completed: int
    overdue: int
    by_type: dict[str, int]
    by_priority: dict[str, int]
    due_today: int
    due_this_week: int
