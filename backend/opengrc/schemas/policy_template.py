from __future__ import annotations

from pydantic import BaseModel


class PolicyTemplateOut(BaseModel):
    id: str
    code: str
    title: str
    description: str
    category: str
    frameworks: list[str]
    review_frequency: str
    related_templates: list[str]
    suggested_controls: list[str]


class PolicyTemplateDetailOut(PolicyTemplateOut):
    content: str


class TemplateFrameworkOut(BaseModel):
    id: str
    name: str
