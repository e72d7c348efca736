"""Paginated, read-only tables over collector-populated AWS data."""
from __future__ import annotations

import math
from typing import Any

from opengrc.client.api import ApiClient, ApiError
from opengrc.client.hooks import Resource
from opengrc.schemas.aws import (
    AwsOverview,
    CloudTrailEventOut,
    ConfigRuleOut,
    Ec2InstanceOut,
    FindingsSummary,
    IamPolicyOut,
    IamRoleOut,
    IamUserOut,
    Page,
    RdsInstanceOut,
    S3BucketOut,
    SecurityFindingOut,
)

# kind -> (path under /integrations/{id}/aws, row model)
TABS: dict[str, tuple[str, type]] = {
    "s3": ("s3/buckets", S3BucketOut),
    "ec2": ("ec2/instances", Ec2InstanceOut),
    "rds": ("rds/instances", RdsInstanceOut),
    "iam_users": ("iam/users", IamUserOut),
    "iam_roles": ("iam/roles", IamRoleOut),
    "iam_policies": ("iam/policies", IamPolicyOut),
    "findings": ("findings", SecurityFindingOut),
    "config_rules": ("config-rules", ConfigRuleOut),
    "cloudtrail": ("cloudtrail", CloudTrailEventOut),
}


class IntegrationViewer:
    """One tab. No writes, no polling; ``page`` is 0-based."""

    def __init__(self, client: ApiClient, integration_id: int, kind: str, page_size: int = 50):
        if kind not in TABS:
            raise ValueError(f"Unknown AWS view: {kind}")
        path, model = TABS[kind]
        self.client = client
        self.integration_id = integration_id
        self.kind = kind
        self.page_size = page_size
        self.page = 0
        self.filters: dict[str, Any] = {}
        self.selected: Any = None
        self._resource: Resource[Page[Any]] = Resource(
            client, f"/integrations/{integration_id}/aws/{path}", model=Page[model],
        )

    def _params(self) -> dict[str, Any]:
        return {**self.filters, "limit": self.page_size, "offset": self.page * self.page_size}

    async def load(self) -> None:
        await self._resource.set_path(params=self._params())

    @property
    def rows(self) -> list[Any]:
        data = self._resource.data
        return list(data.data) if data is not None else []

    @property
    def total(self) -> int:
        data = self._resource.data
        return data.total if data is not None else 0

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))

    @property
    def is_loading(self) -> bool:
        return self._resource.is_loading

    @property
    def error(self) -> ApiError | None:
        return self._resource.error

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.page_count

    @property
    def has_prev(self) -> bool:
        return self.page > 0

    async def next_page(self) -> bool:
        if not self.has_next:
            return False
        self.page += 1
        await self.load()
        return True

    async def prev_page(self) -> bool:
        if not self.has_prev:
            return False
        self.page -= 1
        await self.load()
        return True

    async def set_filter(self, name: str, value: Any) -> None:
        if value is None or value == "":
            self.filters.pop(name, None)
        else:
            self.filters[name] = value
        self.page = 0
        await self.load()

    def select(self, row: Any) -> dict[str, Any]:
        """Detail panel payload: the full record plus its derived flags."""
        self.selected = row
        record = row.model_dump(mode="json")
        return {"record": record, "flags": list(row.risk_flags), "last_synced_at": record.get("last_synced_at")}

    async def close(self) -> None:
        await self._resource.close()


async def fetch_overview(client: ApiClient, integration_id: int) -> AwsOverview:
    return await client.get(f"/integrations/{integration_id}/aws/overview", model=AwsOverview)


async def fetch_findings_summary(client: ApiClient, integration_id: int) -> FindingsSummary:
    return await client.get(f"/integrations/{integration_id}/aws/findings/summary", model=FindingsSummary)
