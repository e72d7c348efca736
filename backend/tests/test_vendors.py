"""Functional tests — Vendor registry + assessments."""
from datetime import date, timedelta

import pytest
from httpx import AsyncClient

URL = "/api/v1/vendors"


@pytest.mark.asyncio
async def test_create_vendor_defaults(client: AsyncClient):
    r = await client.post(URL, json={"name": "Acme Corp"})
    assert r.status_code == 201
    data = r.json()
    assert data["name"] == "Acme Corp"
    assert data["status"] == "active"
    assert data["criticality"] == "medium"
    assert data["data_classification"] == "internal"
    assert data["assessment_count"] == 0
    assert data["last_risk_rating"] is None


@pytest.mark.asyncio
async def test_create_vendor_rejects_unknown_criticality(client: AsyncClient):
    r = await client.post(URL, json={"name": "X", "criticality": "extreme"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_get_vendor_404(client: AsyncClient):
    r = await client.get(f"{URL}/9999")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_list_ordered_by_criticality_then_name(client: AsyncClient):
    await client.post(URL, json={"name": "Zeta", "criticality": "low"})
    await client.post(URL, json={"name": "Beta", "criticality": "critical"})
    await client.post(URL, json={"name": "Alpha", "criticality": "critical"})
    await client.post(URL, json={"name": "Gamma", "criticality": "high"})

    r = await client.get(URL)
    assert [v["name"] for v in r.json()] == ["Alpha", "Beta", "Gamma", "Zeta"]


@pytest.mark.asyncio
async def test_search_and_filter_compose(client: AsyncClient):
    await client.post(URL, json={"name": "Acme Cloud", "criticality": "high"})
    await client.post(URL, json={"name": "Acme Paper", "criticality": "low"})
    await client.post(URL, json={"name": "Other", "description": "acme reseller", "criticality": "high"})

    r = await client.get(URL, params={"search": "acme", "criticality": "high"})
    names = sorted(v["name"] for v in r.json())
    assert names == ["Acme Cloud", "Other"]

    r = await client.get(URL, params={"status": "inactive"})
    assert r.json() == []


@pytest.mark.asyncio
async def test_update_is_sparse(client: AsyncClient):
    cr = await client.post(URL, json={"name": "Acme", "category": "SaaS", "website": "https://acme.io"})
    vid = cr.json()["id"]

    r = await client.put(f"{URL}/{vid}", json={"status": "under_review"})
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "under_review"
    assert data["category"] == "SaaS"
    assert data["website"] == "https://acme.io"


@pytest.mark.asyncio
async def test_latest_assessment_drives_derived_fields(client: AsyncClient):
    vid = (await client.post(URL, json={"name": "Acme"})).json()["id"]

    r = await client.post(f"{URL}/{vid}/assessments", json={
        "assessment_type": "periodic",
        "risk_rating": "low",
        "assessed_at": "2026-06-01T10:00:00",
        "next_assessment_date": "2027-06-01",
    })
    assert r.status_code == 201
    # Older assessment recorded afterwards must not win
    await client.post(f"{URL}/{vid}/assessments", json={
        "assessment_type": "initial",
        "risk_rating": "critical",
        "assessed_at": "2025-01-01T10:00:00",
    })

    v = (await client.get(f"{URL}/{vid}")).json()
    assert v["last_risk_rating"] == "low"
    assert v["last_assessment_date"].startswith("2026-06-01")
    assert v["next_assessment_date"] == "2027-06-01"
    assert v["assessment_count"] == 2

    history = (await client.get(f"{URL}/{vid}/assessments")).json()
    assert [a["risk_rating"] for a in history] == ["low", "critical"]


@pytest.mark.asyncio
async def test_assessment_for_missing_vendor(client: AsyncClient):
    r = await client.post(f"{URL}/9999/assessments", json={"assessment_type": "periodic"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_stats(client: AsyncClient):
    soon = (date.today() + timedelta(days=30)).isoformat()
    later = (date.today() + timedelta(days=365)).isoformat()
    await client.post(URL, json={"name": "A", "criticality": "high", "category": "SaaS", "contract_end": soon})
    await client.post(URL, json={"name": "B", "criticality": "high", "contract_end": later})
    await client.post(URL, json={"name": "C", "status": "inactive"})

    s = (await client.get(f"{URL}/stats")).json()
    assert s["total"] == 3
    assert s["active"] == 2
    assert s["inactive"] == 1
    assert s["by_criticality"] == {"high": 2, "medium": 1}
    assert s["by_category"]["SaaS"] == 1
    assert s["by_category"]["uncategorized"] == 2
    assert s["contracts_expiring_soon"] == 1
    assert s["needs_assessment"] == 2


@pytest.mark.asyncio
async def test_vendor_lifecycle(client: AsyncClient):
    r = await client.post(URL, json={"name": "Acme Corp", "criticality": "high"})
    vid = r.json()["id"]

    listed = (await client.get(URL, params={"criticality": "high"})).json()
    assert [v["id"] for v in listed] == [vid]

    r = await client.post(f"{URL}/{vid}/assessments", json={
        "assessment_type": "initial", "risk_rating": "medium",
    })
    assert r.status_code == 201
    assert (await client.get(f"{URL}/{vid}")).json()["last_risk_rating"] == "medium"

    r = await client.delete(f"{URL}/{vid}")
    assert r.status_code == 200
    assert r.json() == {"status": "deleted", "id": vid}

    assert (await client.get(f"{URL}/{vid}")).status_code == 404
    assert (await client.get(f"{URL}/{vid}/assessments")).status_code == 404
    assert vid not in [v["id"] for v in (await client.get(URL)).json()]
