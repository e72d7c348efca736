"""
Unified cross-entity search over the relational store.

Each searchable entity is described by a _Source; matches are ranked
exact code/title first, then title prefix, then plain substring.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from opengrc.models import Asset, Control, Evidence, Framework, Policy, Risk, Task, Vendor
from opengrc.schemas.search import SearchResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Source:
    type: str
    model: type
    title: str
    path: str
    code: str | None = None
    description: str | None = None
    category: str | None = None
    status: str | None = None
    extra_search: tuple[str, ...] = ()


SOURCES: tuple[_Source, ...] = (
    _Source("control", Control, "name", "/controls", code="code",
            description="description", category="control_type", status="status"),
    _Source("risk", Risk, "title", "/risks", code="code",
            description="description", category="category", status="status"),
    _Source("policy", Policy, "title", "/policies", code="code",
            category="category", status="status", extra_search=("content",)),
    _Source("evidence", Evidence, "title", "/evidence",
            description="description", category="evidence_type", extra_search=("source_reference",)),
    _Source("vendor", Vendor, "name", "/vendors",
            description="description", category="category", status="status"),
    _Source("framework", Framework, "name", "/frameworks",
            description="description", category="category"),
    _Source("asset", Asset, "name", "/assets",
            description="description", category="asset_type", status="status"),
    _Source("task", Task, "title", "/tasks",
            description="description", category="task_type", status="status"),
)

SEARCH_TYPES = tuple(src.type for src in SOURCES)


def _attr(obj, name: str | None):
    return getattr(obj, name) if name else None


def _rank(query: str, code: str | None, title: str) -> int:
    q = query.lower()
    t = title.lower()
    if (code and code.lower() == q) or t == q:
        return 0
    if t.startswith(q) or (code and code.lower().startswith(q)):
        return 1
    return 2


async def unified_search(
    s: AsyncSession,
    query: str,
    types: list[str] | None = None,
    limit: int = 20,
) -> tuple[list[SearchResult], int]:
    """Return (top ``limit`` ranked results, total number of matches)."""
    wanted = set(types) if types else set(SEARCH_TYPES)
    term = f"%{query}%"
    ranked: list[tuple[int, int, str, SearchResult]] = []

    for order, src in enumerate(SOURCES):
        if src.type not in wanted:
            continue
        columns = [src.title, src.code, src.description, *src.extra_search]
        clauses = [getattr(src.model, c).ilike(term) for c in columns if c]
        rows = (await s.execute(select(src.model).where(or_(*clauses)))).scalars().all()
        for row in rows:
            title = getattr(row, src.title)
            code = _attr(row, src.code)
            result = SearchResult(
                id=f"{src.type}:{row.id}",
                entity_id=row.id,
                type=src.type,
                code=code,
                title=title,
                description=_attr(row, src.description),
                category=_attr(row, src.category),
                status=_attr(row, src.status),
                path=f"{src.path}?id={row.id}",
            )
            ranked.append((_rank(query, code, title), order, title.lower(), result))

    ranked.sort(key=lambda item: item[:3])
    log.debug("Search %r matched %d rows", query, len(ranked))
    return [item[3] for item in ranked[:limit]], len(ranked)
