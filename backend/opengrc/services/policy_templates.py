"""Static policy template catalogue, loaded once from bundled YAML."""
import logging
from functools import lru_cache
from pathlib import Path

import yaml

from opengrc.config import settings
from opengrc.schemas.policy_template import PolicyTemplateDetailOut

log = logging.getLogger(__name__)

_DEFAULT_FILE = Path(__file__).resolve().parent.parent / "data" / "policy_templates.yaml"

CATEGORIES = ["security", "it", "compliance", "privacy", "hr"]

FRAMEWORKS = [
    {"id": "soc2", "name": "SOC 2"},
    {"id": "iso27001", "name": "ISO 27001"},
    {"id": "hipaa", "name": "HIPAA"},
    {"id": "pci-dss", "name": "PCI DSS"},
    {"id": "gdpr", "name": "GDPR"},
    {"id": "ccpa", "name": "CCPA"},
]


@lru_cache(maxsize=4)
def _load(path: str) -> tuple[PolicyTemplateDetailOut, ...]:
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    templates = tuple(PolicyTemplateDetailOut.model_validate(t) for t in data.get("templates", []))
    log.info("Loaded %d policy templates from %s", len(templates), path)
    return templates


def list_templates() -> tuple[PolicyTemplateDetailOut, ...]:
    return _load(settings.POLICY_TEMPLATES_FILE or str(_DEFAULT_FILE))


def get_template(template_id: str) -> PolicyTemplateDetailOut | None:
    for t in list_templates():
        if t.id == template_id:
            return t
    return None


def search_templates(
    category: str | None = None,
    framework: str | None = None,
    q: str | None = None,
) -> list[PolicyTemplateDetailOut]:
    needle = q.lower() if q else None
    result = []
    for t in list_templates():
        if category and t.category != category:
            continue
        if framework and framework not in t.frameworks:
            continue
        if needle and not (
            needle in t.title.lower()
            or needle in t.description.lower()
            or needle in t.code.lower()
        ):
            continue
        result.append(t)
    return result
