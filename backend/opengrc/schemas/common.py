"""Shared request/response shapes."""
from __future__ import annotations

from pydantic import BaseModel, Field


class DeletedOut(BaseModel):
    status: str = "deleted"
    id: int


class RequirementIds(BaseModel):
    requirement_ids: list[int] = Field(..., min_length=1)


class ControlIds(BaseModel):
    control_ids: list[int] = Field(..., min_length=1)
    effectiveness: str | None = None


class BatchResult(BaseModel):
    added: int = 0
    removed: int = 0
