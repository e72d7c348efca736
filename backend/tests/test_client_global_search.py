"""Client library — GlobalSearch debounce, keyboard navigation and gating."""
import asyncio

import httpx
import pytest

from opengrc.client.api import ApiClient, Credentials
from opengrc.client.global_search import GlobalSearch
from opengrc.config import settings


async def _seed(api: ApiClient) -> dict:
    return {
        "control": (await api.post("/controls", {"code": "AC-001", "name": "Access reviews"}))["id"],
        "risk": (await api.post("/risks", {"code": "R-1", "title": "Unauthorized access"}))["id"],
        "vendor": (await api.post("/vendors", {"name": "Access Corp"}))["id"],
    }


async def _ready(api: ApiClient) -> GlobalSearch:
    gs = GlobalSearch(api, debounce=0.01)
    assert await gs.check_status() is True
    gs.open()
    return gs


@pytest.mark.asyncio
async def test_rapid_typing_sends_one_request(recorded_api):
    api, transport = recorded_api
    ids = await _seed(api)
    gs = await _ready(api)

    for text in ("a", "ac", "ac-", "ac-001"):
        gs.set_query(text)
    await gs.settle()

    assert transport.count("GET", "/api/v1/search") - transport.count("GET", "/api/v1/search/status") == 1
    assert gs.query == "ac-001"
    assert gs.results[0].entity_id == ids["control"]
    assert gs.is_loading is False
    assert gs.error is None


@pytest.mark.asyncio
async def test_navigation_and_select(api):
    ids = await _seed(api)
    gs = await _ready(api)
    gs.set_query("access")
    await gs.settle()

    assert gs.total == 3
    assert gs.active_index == 0
    gs.move_up()
    assert gs.active_index == 0
    for _ in range(5):
        gs.move_down()
    assert gs.active_index == len(gs.results) - 1

    items = gs.items()
    assert [i["active"] for i in items].count(True) == 1
    assert {i["badge"] for i in items} == {"C", "R", "V"}

    control_idx = next(i for i, r in enumerate(gs.results) if r.type == "control")
    assert gs.badge(gs.results[control_idx]) == "C"
    path = gs.select(control_idx)
    assert path == f"/controls?id={ids['control']}"
    assert gs.is_open is False
    assert gs.results == []
    assert gs.query == ""


@pytest.mark.asyncio
async def test_blank_query_clears_results(api):
    await _seed(api)
    gs = await _ready(api)
    gs.set_query("access")
    await gs.settle()
    assert gs.results

    assert gs.set_query("   ") is None
    assert gs.results == []
    assert gs.total == 0
    assert gs.active is None
    assert gs.select() is None


@pytest.mark.asyncio
async def test_closed_overlay_ignores_input(api):
    gs = GlobalSearch(api, debounce=0.01)
    await gs.check_status()
    assert gs.set_query("access") is None
    assert gs.query == ""


@pytest.mark.asyncio
async def test_disabled_search_is_inert(recorded_api, monkeypatch):
    api, transport = recorded_api
    monkeypatch.setattr(settings, "SEARCH_ENABLED", False)
    gs = GlobalSearch(api, debounce=0.01)

    assert await gs.check_status() is False
    gs.open()
    assert gs.is_open is False
    assert gs.set_query("access") is None
    assert gs.select() is None
    assert transport.count("GET", "/api/v1/search") == 1


@pytest.mark.asyncio
async def test_unreachable_status_disables_search():
    client = ApiClient(
        "http://grc.local/api/v1", Credentials(),
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    gs = GlobalSearch(client)
    assert await gs.check_status() is False
    assert gs.enabled is False
    gs.open()
    assert gs.is_open is False
    await client.aclose()


@pytest.mark.asyncio
async def test_search_failure_surfaces_error(api):
    gs = await _ready(api)
    gs.limit = 500
    gs.set_query("access")
    await gs.settle()
    assert gs.error is not None
    assert gs.error.status == 422
    assert gs.results == []
    assert gs.is_loading is False


@pytest.mark.asyncio
async def test_select_rejects_index_outside_results(api):
    ids = await _seed(api)
    gs = await _ready(api)
    gs.set_query("access")
    await gs.settle()
    assert len(gs.results) == 3

    assert gs.select(3) is None
    assert gs.select(-1) is None
    assert gs.is_open is True
    assert gs.active_index == 0
    assert len(gs.results) == 3

    assert gs.select(0) in {
        f"/controls?id={ids['control']}", f"/risks?id={ids['risk']}", f"/vendors?id={ids['vendor']}",
    }
    assert gs.is_open is False


@pytest.mark.asyncio
async def test_clearing_query_mid_request_stops_loading():
    arrived = asyncio.Event()
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/status"):
            return httpx.Response(200, json={"enabled": True, "engine": "database"})
        arrived.set()
        await release.wait()
        return httpx.Response(200, json={"results": [], "total": 0, "query": "acme", "processing_time_ms": 1})

    client = ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(handler))
    gs = GlobalSearch(client, debounce=0.01)
    assert await gs.check_status() is True
    gs.open()

    gs.set_query("acme")
    await arrived.wait()
    assert gs.is_loading is True

    assert gs.set_query("") is None
    await asyncio.sleep(0.05)
    assert gs.is_loading is False
    assert gs.results == []
    release.set()
    gs.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_evidence_result_badge_and_route(api):
    eid = (await api.post("/evidence", {"title": "Access review export", "evidence_type": "report"}))["id"]
    gs = await _ready(api)
    gs.set_query("access review export")
    await gs.settle()

    assert [r.type for r in gs.results] == ["evidence"]
    assert gs.items()[0]["badge"] == "E"
    assert gs.select() == f"/evidence?id={eid}"
