"""Functional tests — Controls + requirement mappings."""
import pytest
from httpx import AsyncClient

URL = "/api/v1/controls"


@pytest.mark.asyncio
async def test_create_control(client: AsyncClient):
    r = await client.post(URL, json={"code": "AC-001", "name": "Access reviews"})
    assert r.status_code == 201
    data = r.json()
    assert data["code"] == "AC-001"
    assert data["status"] == "not_implemented"
    assert data["control_type"] == "preventive"
    assert data["frequency"] == "continuous"
    assert data["mapped_requirements"] == []
    assert data["linked_assets"] == []


@pytest.mark.asyncio
async def test_duplicate_code_409(client: AsyncClient):
    await client.post(URL, json={"code": "AC-001", "name": "One"})
    r = await client.post(URL, json={"code": "AC-001", "name": "Two"})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_update_to_taken_code_409(client: AsyncClient):
    await client.post(URL, json={"code": "AC-001", "name": "One"})
    cid = (await client.post(URL, json={"code": "AC-002", "name": "Two"})).json()["id"]

    r = await client.put(f"{URL}/{cid}", json={"code": "AC-001"})
    assert r.status_code == 409

    # Same code on the same control is not a conflict
    r = await client.put(f"{URL}/{cid}", json={"code": "AC-002", "status": "in_progress"})
    assert r.status_code == 200
    assert r.json()["status"] == "in_progress"


@pytest.mark.asyncio
async def test_list_filters(client: AsyncClient):
    await client.post(URL, json={"code": "B-1", "name": "Backups", "status": "implemented"})
    await client.post(URL, json={"code": "A-1", "name": "MFA", "control_type": "detective"})

    r = await client.get(URL)
    assert [c["code"] for c in r.json()] == ["A-1", "B-1"]

    r = await client.get(URL, params={"status": "implemented"})
    assert [c["code"] for c in r.json()] == ["B-1"]

    r = await client.get(URL, params={"search": "mfa"})
    assert [c["code"] for c in r.json()] == ["A-1"]

    r = await client.get(URL, params={"status": "bogus"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_stats_excludes_not_applicable(client: AsyncClient):
    for i, status in enumerate(["implemented", "implemented", "in_progress", "not_implemented", "not_applicable"]):
        await client.post(URL, json={"code": f"C-{i}", "name": f"Control {i}", "status": status})

    s = (await client.get(f"{URL}/stats")).json()
    assert s["total"] == 5
    assert s["implemented"] == 2
    assert s["not_applicable"] == 1
    assert s["implementation_percentage"] == 50.0


@pytest.mark.asyncio
async def test_stats_empty(client: AsyncClient):
    s = (await client.get(f"{URL}/stats")).json()
    assert s["total"] == 0
    assert s["implementation_percentage"] == 0.0


@pytest.mark.asyncio
async def test_map_and_unmap_requirements(client: AsyncClient, seed_framework, seed_control):
    req_ids = [seed_framework["cc11"], seed_framework["cc12"]]

    r = await client.post(f"{URL}/{seed_control}/requirements", json={"requirement_ids": req_ids})
    assert r.status_code == 200
    assert r.json() == {"added": 2, "removed": 0}

    # Mapping again is a no-op
    r = await client.post(f"{URL}/{seed_control}/requirements", json={"requirement_ids": req_ids})
    assert r.json()["added"] == 0

    detail = (await client.get(f"{URL}/{seed_control}")).json()
    assert detail["requirement_count"] == 2
    assert {m["id"] for m in detail["mapped_requirements"]} == set(req_ids)
    assert detail["mapped_requirements"][0]["framework_name"] == "SOC 2 (custom)"

    r = await client.request("DELETE", f"{URL}/{seed_control}/requirements",
                             json={"requirement_ids": [seed_framework["cc11"]]})
    assert r.json() == {"added": 0, "removed": 1}

    detail = (await client.get(f"{URL}/{seed_control}")).json()
    assert [m["code"] for m in detail["mapped_requirements"]] == ["CC1.2"]

    # The requirement itself survives unmapping
    fw = seed_framework["fw_id"]
    reqs = (await client.get(f"/api/v1/frameworks/{fw}/requirements")).json()
    assert seed_framework["cc11"] in {r["id"] for r in reqs}


@pytest.mark.asyncio
async def test_map_unknown_requirement_404(client: AsyncClient, seed_control):
    r = await client.post(f"{URL}/{seed_control}/requirements", json={"requirement_ids": [9999]})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_map_requires_ids(client: AsyncClient, seed_control):
    r = await client.post(f"{URL}/{seed_control}/requirements", json={"requirement_ids": []})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_filter_by_framework(client: AsyncClient, seed_framework, seed_control):
    other = (await client.post(URL, json={"code": "ZZ-1", "name": "Unmapped"})).json()["id"]
    await client.post(f"{URL}/{seed_control}/requirements", json={"requirement_ids": [seed_framework["cc21"]]})

    r = await client.get(URL, params={"framework_id": seed_framework["fw_id"]})
    ids = [c["id"] for c in r.json()]
    assert ids == [seed_control]
    assert other not in ids
    assert r.json()[0]["requirement_count"] == 1


@pytest.mark.asyncio
async def test_delete_control_removes_links(client: AsyncClient, seed_framework, seed_control):
    await client.post(f"{URL}/{seed_control}/requirements", json={"requirement_ids": [seed_framework["cc11"]]})
    asset = (await client.post("/api/v1/assets", json={"name": "DB"})).json()["id"]
    await client.post(f"/api/v1/assets/{asset}/controls", json={"control_ids": [seed_control]})

    r = await client.delete(f"{URL}/{seed_control}")
    assert r.json() == {"status": "deleted", "id": seed_control}
    assert (await client.get(f"{URL}/{seed_control}")).status_code == 404

    a = (await client.get(f"/api/v1/assets/{asset}")).json()
    assert a["linked_controls"] == []

    gap = (await client.get(f"/api/v1/frameworks/{seed_framework['fw_id']}/gap-analysis")).json()
    assert gap["covered"] == 0
