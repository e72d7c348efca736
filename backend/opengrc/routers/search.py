"""
Unified search — /api/v1/search
"""
import time

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.config import settings
from opengrc.database import get_session
from opengrc.schemas.search import SearchResponse, SearchStatus
from opengrc.services.search import SEARCH_TYPES, unified_search

router = APIRouter(prefix="/api/v1/search", tags=["Search"])


@router.get("/status", response_model=SearchStatus, summary="Is search available")
async def search_status():
    return SearchStatus(enabled=settings.SEARCH_ENABLED, engine="database")


@router.get("", response_model=SearchResponse, summary="Search across all entities")
async def search(
    q: str = Query(""),
    types: str | None = Query(None, description="Comma separated entity types"),
    limit: int = Query(20, ge=1, le=100),
    s: AsyncSession = Depends(get_session),
):
    if not settings.SEARCH_ENABLED:
        raise HTTPException(503, "Search is disabled")
    query = q.strip()
    if not query:
        raise HTTPException(400, "Search query must not be empty")

    type_list = None
    if types:
        type_list = [t.strip() for t in types.split(",") if t.strip()]
        unknown = set(type_list) - set(SEARCH_TYPES)
        if unknown:
            raise HTTPException(400, f"Unknown search types: {', '.join(sorted(unknown))}")

    started = time.perf_counter()
    results, total = await unified_search(s, query, type_list, limit)
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    return SearchResponse(results=results, total=total, query=query, processing_time_ms=elapsed_ms)
