"""Functional tests — unified search."""
import pytest
from httpx import AsyncClient

from opengrc.config import settings

URL = "/api/v1/search"


async def _seed(client: AsyncClient) -> dict:
    ids = {}
    ids["control"] = (await client.post("/api/v1/controls", json={
        "code": "AC-001", "name": "Access reviews", "description": "Quarterly review of access",
    })).json()["id"]
    ids["control2"] = (await client.post("/api/v1/controls", json={
        "code": "ZZ-9", "name": "Logging", "description": "Centralised access logs",
    })).json()["id"]
    ids["risk"] = (await client.post("/api/v1/risks", json={
        "code": "R-1", "title": "Unauthorized access",
    })).json()["id"]
    ids["vendor"] = (await client.post("/api/v1/vendors", json={"name": "Access Corp"})).json()["id"]
    ids["policy"] = (await client.post("/api/v1/policies", json={
        "code": "POL-9", "title": "Password policy", "content": "Access requires MFA",
    })).json()["id"]
    return ids


@pytest.mark.asyncio
async def test_status(client: AsyncClient):
    r = await client.get(f"{URL}/status")
    assert r.json() == {"enabled": True, "engine": "database"}


@pytest.mark.asyncio
async def test_search_across_entities(client: AsyncClient):
    ids = await _seed(client)

    r = await client.get(URL, params={"q": "access"})
    assert r.status_code == 200
    data = r.json()
    assert data["query"] == "access"
    assert data["total"] == 5
    types = {x["type"] for x in data["results"]}
    assert types == {"control", "risk", "vendor", "policy"}

    # Title-prefix matches rank ahead of plain substring matches
    first_two = {(x["type"], x["entity_id"]) for x in data["results"][:2]}
    assert first_two == {("control", ids["control"]), ("vendor", ids["vendor"])}

    ctrl = next(x for x in data["results"] if x["entity_id"] == ids["control"] and x["type"] == "control")
    assert ctrl["id"] == f"control:{ids['control']}"
    assert ctrl["code"] == "AC-001"
    assert ctrl["path"] == f"/controls?id={ids['control']}"


@pytest.mark.asyncio
async def test_exact_code_ranks_first(client: AsyncClient):
    ids = await _seed(client)
    r = await client.get(URL, params={"q": "ac-001"})
    results = r.json()["results"]
    assert results[0]["entity_id"] == ids["control"]
    assert results[0]["type"] == "control"


@pytest.mark.asyncio
async def test_type_filter_and_limit(client: AsyncClient):
    await _seed(client)

    r = await client.get(URL, params={"q": "access", "types": "control,risk"})
    assert {x["type"] for x in r.json()["results"]} == {"control", "risk"}

    r = await client.get(URL, params={"q": "access", "limit": 2})
    assert len(r.json()["results"]) == 2
    assert r.json()["total"] == 5


@pytest.mark.asyncio
async def test_unknown_type_400(client: AsyncClient):
    r = await client.get(URL, params={"q": "x", "types": "control,spaceship"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_empty_query_400(client: AsyncClient):
    assert (await client.get(URL, params={"q": "   "})).status_code == 400


@pytest.mark.asyncio
async def test_no_matches(client: AsyncClient):
    await _seed(client)
    data = (await client.get(URL, params={"q": "kubernetes"})).json()
    assert data["results"] == []
    assert data["total"] == 0


@pytest.mark.asyncio
async def test_disabled_search(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "SEARCH_ENABLED", False)

    assert (await client.get(f"{URL}/status")).json()["enabled"] is False
    assert (await client.get(URL, params={"q": "access"})).status_code == 503


@pytest.mark.asyncio
async def test_evidence_results_link_to_evidence_page(client: AsyncClient):
    eid = (await client.post("/api/v1/evidence", json={
        "title": "Penetration test report 2026", "evidence_type": "report",
    })).json()["id"]
    await client.post("/api/v1/controls", json={"code": "PT-1", "name": "Annual penetration test"})

    data = (await client.get(URL, params={"q": "penetration", "types": "evidence"})).json()
    assert data["total"] == 1
    hit = data["results"][0]
    assert hit["id"] == f"evidence:{eid}"
    assert hit["type"] == "evidence"
    assert hit["category"] == "report"
    assert hit["path"] == f"/evidence?id={eid}"

    data = (await client.get(URL, params={"q": "penetration"})).json()
    assert {x["type"] for x in data["results"]} == {"evidence", "control"}
