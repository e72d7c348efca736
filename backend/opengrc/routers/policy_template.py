"""
Policy template library — /api/v1/policy-templates (read-only)
"""
from fastapi import APIRouter, HTTPException, Query

from opengrc.schemas.policy_template import (
    PolicyTemplateDetailOut, PolicyTemplateOut, TemplateFrameworkOut,
)
from opengrc.services.policy_templates import (
    CATEGORIES, FRAMEWORKS, get_template, list_templates, search_templates,
)

router = APIRouter(prefix="/api/v1/policy-templates", tags=["Policy templates"])


def _summary(t: PolicyTemplateDetailOut) -> PolicyTemplateOut:
    return PolicyTemplateOut.model_validate(t.model_dump(exclude={"content"}))


@router.get("", response_model=list[PolicyTemplateOut], summary="List policy templates")
async def list_policy_templates():
    return [_summary(t) for t in list_templates()]


@router.get("/search", response_model=list[PolicyTemplateOut], summary="Search policy templates")
async def search_policy_templates(
    category: str | None = Query(None),
    framework: str | None = Query(None),
    q: str | None = Query(None),
):
    return [_summary(t) for t in search_templates(category=category, framework=framework, q=q)]


@router.get("/categories", response_model=list[str], summary="Template categories")
async def template_categories():
    return CATEGORIES


@router.get("/frameworks", response_model=list[TemplateFrameworkOut], summary="Frameworks covered by templates")
async def template_frameworks():
    return FRAMEWORKS


@router.get("/{template_id}", response_model=PolicyTemplateDetailOut, summary="Template with content")
async def get_policy_template(template_id: str):
    t = get_template(template_id)
    if t is None:
        raise HTTPException(404, "Policy template not found")
    return t
