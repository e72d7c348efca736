"""Functional tests — Audit engagements, auditor requests and findings."""
from datetime import date, datetime, timedelta

import pytest
from httpx import AsyncClient

URL = "/api/v1/audits"


@pytest.mark.asyncio
async def test_create_audit(client: AsyncClient, seed_framework):
    r = await client.post(URL, json={
        "name": "SOC 2 Type II 2026",
        "audit_type": "certification",
        "framework_id": seed_framework["fw_id"],
        "auditor_firm": "Prescient & Co",
        "period_start": "2026-01-01",
        "period_end": "2026-06-30",
    })
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "planning"
    assert data["framework_name"] == "SOC 2 (custom)"
    assert data["request_count"] == 0
    assert data["open_findings"] == 0


@pytest.mark.asyncio
async def test_validation(client: AsyncClient):
    assert (await client.post(URL, json={"name": ""})).status_code == 422
    assert (await client.post(URL, json={"name": "X", "audit_type": "surprise"})).status_code == 422
    r = await client.post(URL, json={"name": "X", "period_start": "2026-06-30", "period_end": "2026-01-01"})
    assert r.status_code == 400
    assert (await client.post(URL, json={"name": "X", "framework_id": 9999})).status_code == 404

    aid = (await client.post(URL, json={"name": "ISO surveillance", "period_start": "2026-03-01"})).json()["id"]
    assert (await client.put(f"{URL}/{aid}", json={"period_end": "2026-02-01"})).status_code == 400
    assert (await client.put(f"{URL}/{aid}", json={"status": "done"})).status_code == 422
    assert (await client.get(f"{URL}/9999")).status_code == 404


@pytest.mark.asyncio
async def test_list_filters(client: AsyncClient, seed_framework):
    fw = seed_framework["fw_id"]
    internal = (await client.post(URL, json={"name": "Internal ITGC review", "audit_type": "internal"})).json()["id"]
    soc2 = (await client.post(URL, json={
        "name": "SOC 2 Type II", "audit_type": "certification", "framework_id": fw, "auditor_firm": "Prescient",
    })).json()["id"]
    await client.put(f"{URL}/{soc2}", json={"status": "fieldwork"})

    # Newest first
    assert [a["id"] for a in (await client.get(URL)).json()] == [soc2, internal]
    assert [a["id"] for a in (await client.get(URL, params={"audit_type": "internal"})).json()] == [internal]
    assert [a["id"] for a in (await client.get(URL, params={"status": "fieldwork"})).json()] == [soc2]
    assert [a["id"] for a in (await client.get(URL, params={"framework_id": fw})).json()] == [soc2]
    assert [a["id"] for a in (await client.get(URL, params={"search": "prescient"})).json()] == [soc2]


@pytest.mark.asyncio
async def test_requests_and_findings(client: AsyncClient):
    aid = (await client.post(URL, json={"name": "PCI DSS assessment", "audit_type": "compliance"})).json()["id"]
    past = (datetime.utcnow() - timedelta(days=2)).replace(microsecond=0).isoformat()
    future = (datetime.utcnow() + timedelta(days=7)).replace(microsecond=0).isoformat()

    r = await client.post(f"{URL}/{aid}/requests", json={"title": "Firewall ruleset", "due_at": past})
    assert r.status_code == 201
    late = r.json()
    assert late["status"] == "open"
    assert late["is_overdue"] is True
    await client.post(f"{URL}/{aid}/requests", json={"title": "User access list", "due_at": future})
    await client.post(f"{URL}/{aid}/requests", json={"title": "Network diagram"})

    requests = (await client.get(f"{URL}/{aid}/requests")).json()
    assert [q["title"] for q in requests] == ["Firewall ruleset", "User access list", "Network diagram"]

    r = await client.put(f"{URL}/{aid}/requests/{late['id']}", json={"status": "responded"})
    assert r.json()["is_overdue"] is False

    yesterday = (date.today() - timedelta(days=1)).isoformat()
    f1 = (await client.post(f"{URL}/{aid}/findings", json={
        "title": "Shared admin account", "finding_type": "deficiency", "remediation_due": yesterday,
    })).json()
    assert f1["status"] == "open"
    assert f1["remediation_overdue"] is True
    await client.post(f"{URL}/{aid}/findings", json={"title": "Stale firewall rule", "finding_type": "observation"})

    r = await client.put(f"{URL}/{aid}/findings/{f1['id']}", json={"status": "closed"})
    assert r.json()["remediation_overdue"] is False
    assert (await client.put(f"{URL}/{aid}/findings/{f1['id']}", json={"status": "fixed"})).status_code == 422

    detail = (await client.get(f"{URL}/{aid}")).json()
    assert detail["request_count"] == 3
    assert detail["open_requests"] == 2
    assert detail["finding_count"] == 2
    assert detail["open_findings"] == 1


@pytest.mark.asyncio
async def test_children_belong_to_their_audit(client: AsyncClient):
    a1 = (await client.post(URL, json={"name": "A"})).json()["id"]
    a2 = (await client.post(URL, json={"name": "B"})).json()["id"]
    fid = (await client.post(f"{URL}/{a1}/findings", json={"title": "Gap"})).json()["id"]
    rid = (await client.post(f"{URL}/{a1}/requests", json={"title": "Docs"})).json()["id"]

    assert (await client.put(f"{URL}/{a2}/findings/{fid}", json={"status": "closed"})).status_code == 404
    assert (await client.put(f"{URL}/{a2}/requests/{rid}", json={"status": "closed"})).status_code == 404
    assert (await client.get(f"{URL}/9999/findings")).status_code == 404
    assert (await client.post(f"{URL}/9999/requests", json={"title": "x"})).status_code == 404


@pytest.mark.asyncio
async def test_stats(client: AsyncClient):
    a1 = (await client.post(URL, json={"name": "A", "audit_type": "internal"})).json()["id"]
    a2 = (await client.post(URL, json={"name": "B", "audit_type": "external"})).json()["id"]
    await client.post(URL, json={"name": "C"})
    await client.put(f"{URL}/{a1}", json={"status": "reporting"})
    await client.put(f"{URL}/{a2}", json={"status": "completed"})

    past = (datetime.utcnow() - timedelta(days=1)).replace(microsecond=0).isoformat()
    await client.post(f"{URL}/{a1}/requests", json={"title": "Late", "due_at": past})
    await client.post(f"{URL}/{a1}/requests", json={"title": "Undated"})
    await client.post(f"{URL}/{a1}/findings", json={"title": "Open gap"})
    closed = (await client.post(f"{URL}/{a2}/findings", json={"title": "Fixed gap"})).json()["id"]
    await client.put(f"{URL}/{a2}/findings/{closed}", json={"status": "closed"})

    s = (await client.get(f"{URL}/stats")).json()
    assert s["total"] == 3
    assert s["in_progress"] == 1
    assert s["completed"] == 1
    assert s["by_type"] == {"internal": 1, "external": 1, "unspecified": 1}
    assert s["open_findings"] == 1
    assert s["overdue_requests"] == 1


@pytest.mark.asyncio
async def test_delete_cascades_children(client: AsyncClient):
    aid = (await client.post(URL, json={"name": "Readiness review", "audit_type": "readiness"})).json()["id"]
    await client.post(f"{URL}/{aid}/requests", json={"title": "Policies"})
    await client.post(f"{URL}/{aid}/findings", json={"title": "No DR test"})

    r = await client.delete(f"{URL}/{aid}")
    assert r.json() == {"status": "deleted", "id": aid}
    assert (await client.get(f"{URL}/{aid}")).status_code == 404
    assert (await client.get(f"{URL}/{aid}/findings")).status_code == 404
    assert aid not in [a["id"] for a in (await client.get(URL)).json()]
    assert (await client.get(f"{URL}/stats")).json()["open_findings"] == 0
