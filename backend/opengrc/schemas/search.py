from __future__ import annotations

from pydantic import BaseModel


class SearchResult(BaseModel):
    id: str
    entity_id: int
    type: str
    code: str | None = None
    title: str
    description: str | None = None
    category: str | None = None
    status: str | None = None
    path: str


class SearchResponse(BaseModel):
    results: list[SearchResult]
    total: int
    query: str
    processing_time_ms: int


class SearchStatus(BaseModel):
    enabled: bool
    engine: str
