"""Client library — ListView states, server-side filters and stats cards."""
import asyncio

import httpx
import pytest

from opengrc.client.api import ApiClient, Credentials
from opengrc.client.hooks import Mutation, ResourceCache
from opengrc.client.list_view import EMPTY, ERROR, LOADING, READY, ListView
from opengrc.schemas.compliance_audit import AuditOut, AuditStats
from opengrc.schemas.vendor import VendorOut, VendorStats


def _vendors(api: ApiClient, **kwargs) -> ListView:
    return ListView(api, "vendors", VendorOut, VendorStats, **kwargs)


@pytest.mark.asyncio
async def test_loading_then_empty(api: ApiClient):
    view = _vendors(api)
    assert view.state == LOADING

    await view.load()
    assert view.state == EMPTY
    assert view.is_empty
    assert view.rows == []
    assert view.stats.total == 0
    await view.close()


@pytest.mark.asyncio
async def test_filters_go_to_the_server(recorded_api):
    api, transport = recorded_api
    for name, crit in [("Acme Cloud", "high"), ("Acme Paper", "low"), ("Globex", "high")]:
        await api.post("/vendors", {"name": name, "criticality": crit})

    view = _vendors(api)
    await view.load()
    assert view.state == READY
    assert len(view.rows) == 3
    assert view.stats.by_criticality == {"high": 2, "low": 1}

    await view.set_filter("criticality", "high")
    assert {v.name for v in view.rows} == {"Acme Cloud", "Globex"}

    await view.set_search("  acme ")
    assert [v.name for v in view.rows] == ["Acme Cloud"]

    # Empty value removes the filter
    await view.set_filter("criticality", "")
    assert {v.name for v in view.rows} == {"Acme Cloud", "Acme Paper"}

    await view.set_search("nothing-matches")
    assert view.state == EMPTY

    await view.clear_filters()
    assert len(view.rows) == 3
    assert transport.count("GET", "/api/v1/vendors") >= 6
    await view.close()


@pytest.mark.asyncio
async def test_rows_error_does_not_depend_on_stats():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/stats"):
            return httpx.Response(200, json={
                "total": 0, "active": 0, "inactive": 0, "by_criticality": {}, "by_category": {},
                "contracts_expiring_soon": 0, "needs_assessment": 0,
            })
        return httpx.Response(500, text="database unavailable")

    client = ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(handler))
    view = ListView(client, "vendors", VendorOut, VendorStats)
    await view.load()
    assert view.state == ERROR
    assert view.error.status == 500
    assert view.stats is not None
    assert view.stats_error is None
    await view.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_stats_error_leaves_rows_usable():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/stats"):
            return httpx.Response(503, text="stats offline")
        return httpx.Response(200, json=[])

    client = ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(handler))
    view = ListView(client, "controls")
    await view.load()
    assert view.state == EMPTY
    assert view.stats is None
    assert view.stats_error.status == 503
    await view.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_retry_after_failure():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("offline", request=request)
        return httpx.Response(200, json=[{"id": 1}])

    client = ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(handler))
    view = ListView(client, "tasks", with_stats=False)
    await view.load()
    assert view.state == ERROR
    assert view.error.status == 0

    await view.retry()
    assert view.state == READY
    assert view.rows == [{"id": 1}]
    await view.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_sheet_close_refreshes_only_when_changed(recorded_api):
    api, transport = recorded_api
    vid = (await api.post("/vendors", {"name": "Acme"}))["id"]
    view = _vendors(api)
    await view.load()

    assert view.open_row(vid) == vid
    assert view.selected_id == vid

    before = transport.count("GET")
    await view.on_sheet_closed(changed=False)
    assert view.selected_id is None
    assert transport.count("GET") == before

    await api.post("/vendors", {"name": "Beta"})
    await view.on_sheet_closed(changed=True)
    assert len(view.rows) == 2
    assert view.stats.total == 2
    await view.close()


@pytest.mark.asyncio
async def test_shared_cache_refreshes_list(api: ApiClient):
    cache = ResourceCache()
    view = _vendors(api, cache=cache)
    await view.load()

    create = Mutation(lambda body: api.post("/vendors", body), cache=cache, invalidates=["vendors"])
    await create.mutate({"name": "Acme"})
    assert len(view.rows) == 1
    assert view.stats.total == 1
    await view.close()


@pytest.mark.asyncio
async def test_overlapping_searches_settle_on_the_latest():
    arrived = asyncio.Event()
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        search = request.url.params.get("search", "")
        if search == "ac":
            arrived.set()
            await release.wait()
        return httpx.Response(200, json=[{"id": len(search), "name": search}])

    client = ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(handler))
    view = ListView(client, "vendors", with_stats=False)

    first = asyncio.ensure_future(view.set_search("ac"))
    await arrived.wait()
    second = asyncio.ensure_future(view.set_search("acme"))
    await second
    release.set()

    results = await asyncio.gather(first, second, return_exceptions=True)
    assert not any(isinstance(r, BaseException) for r in results)
    assert view.search == "acme"
    assert view.rows == [{"id": 4, "name": "acme"}]
    assert view.state == READY
    await view.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_audit_list_with_stats_cards(api: ApiClient):
    await api.post("/audits", {"name": "SOC 2 Type II", "audit_type": "certification"})
    await api.post("/audits", {"name": "Internal ITGC review", "audit_type": "internal"})

    view = ListView(api, "audits", AuditOut, AuditStats)
    await view.load()
    assert view.state == READY
    assert view.stats.total == 2
    assert view.stats.by_type == {"certification": 1, "internal": 1}

    await view.set_filter("audit_type", "internal")
    assert [a.name for a in view.rows] == ["Internal ITGC review"]
    await view.close()
