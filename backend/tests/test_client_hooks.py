"""Client library — Resource / Mutation / ResourceCache behaviour."""
import asyncio

import httpx
import pytest

from opengrc.client.api import ApiClient, ApiError, Credentials
from opengrc.client.hooks import Mutation, Resource, ResourceCache
from opengrc.schemas.vendor import VendorOut


class _GatedServer:
    """MockTransport handler whose responses can be held back per query value."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.arrived: dict[str, asyncio.Event] = {}

    def gate(self, q: str) -> asyncio.Event:
        self.gates[q] = asyncio.Event()
        self.arrived[q] = asyncio.Event()
        return self.gates[q]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        q = request.url.params.get("q", "")
        if q in self.gates:
            self.arrived[q].set()
            await self.gates[q].wait()
        if q == "boom":
            return httpx.Response(500, text="Internal error")
        return httpx.Response(200, json=[{"q": q}])


def _client(server) -> ApiClient:
    return ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(server))


@pytest.mark.asyncio
async def test_initial_state_and_fetch():
    server = _GatedServer()
    client = _client(server)
    r = Resource(client, "/items", params={"q": "a"})
    assert r.is_loading is True
    assert r.data is None

    await r.start()
    assert r.data == [{"q": "a"}]
    assert r.is_loading is False
    assert r.error is None
    await r.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_error_state():
    server = _GatedServer()
    client = _client(server)
    r = Resource(client, "/items", params={"q": "boom"})
    await r.refetch()
    assert r.data is None
    assert r.is_loading is False
    assert isinstance(r.error, ApiError)
    assert r.error.status == 500
    assert r.error.message == "Internal error"
    await client.aclose()


@pytest.mark.asyncio
async def test_disabled_resource_issues_no_request():
    server = _GatedServer()
    client = _client(server)
    r = Resource(client, "/items", enabled=False)
    assert r.is_loading is False
    await r.refetch()
    assert server.requests == []
    assert r.data is None

    await r.set_path(params={"q": "x"}, enabled=True)
    assert r.data == [{"q": "x"}]
    await client.aclose()


@pytest.mark.asyncio
async def test_stale_response_is_dropped():
    server = _GatedServer()
    release_a = server.gate("a")
    client = _client(server)
    r = Resource(client, "/items", params={"q": "a"})

    first = asyncio.ensure_future(r.refetch())
    await server.arrived["a"].wait()

    r.params = {"q": "b"}
    await r.refetch()
    assert r.data == [{"q": "b"}]

    release_a.set()
    await first
    # The older response arrived last but must not overwrite the newer one
    assert r.data == [{"q": "b"}]
    assert r.is_loading is False
    await client.aclose()


@pytest.mark.asyncio
async def test_superseded_fetch_completes_quietly():
    server = _GatedServer()
    release = server.gate("slow")
    client = _client(server)
    r = Resource(client, "/items", params={"q": "slow"})

    slow = r.start()
    await server.arrived["slow"].wait()
    await r.set_path(params={"q": "fast"})
    assert r.data == [{"q": "fast"}]

    release.set()
    assert await slow is None
    assert not slow.cancelled()
    assert r.data == [{"q": "fast"}]
    assert r.is_loading is False
    await client.aclose()


@pytest.mark.asyncio
async def test_close_returns_normally_to_waiting_callers():
    server = _GatedServer()
    server.gate("a")
    client = _client(server)
    r = Resource(client, "/items", params={"q": "a"})

    waiting = asyncio.ensure_future(r.set_path(params={"q": "a"}))
    await server.arrived["a"].wait()
    await r.close()

    assert await waiting is None
    assert r.data is None
    await client.aclose()


@pytest.mark.asyncio
async def test_close_discards_pending_response():
    server = _GatedServer()
    release = server.gate("a")
    client = _client(server)
    r = Resource(client, "/items", params={"q": "a"})

    r.start()
    await server.arrived["a"].wait()
    await r.close()
    release.set()

    assert r.closed
    assert r.data is None
    assert r.is_loading is False

    await r.refetch()
    assert len(server.requests) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_mutation_invalidates_collection_detail_and_stats(api: ApiClient):
    cache = ResourceCache()
    first = await api.post("/vendors", {"name": "Acme"}, model=VendorOut)

    rows = Resource(api, "/vendors", model=list[VendorOut], cache=cache, cache_key=("vendors", None))
    detail = Resource(api, f"/vendors/{first.id}", model=VendorOut, cache=cache, cache_key=("vendors", first.id))
    stats = Resource(api, "/vendors/stats", cache=cache, cache_key=("vendors", "stats"))
    other = Resource(api, "/controls", cache=cache, cache_key=("controls", None))
    for r in (rows, detail, stats, other):
        await r.start()
    assert len(rows.data) == 1
    assert stats.data["total"] == 1

    create = Mutation(lambda body: api.post("/vendors", body, model=VendorOut),
                      cache=cache, invalidates=["vendors"])
    created = await create.mutate({"name": "Beta"})
    assert created.name == "Beta"
    assert create.error is None
    assert len(rows.data) == 2
    assert stats.data["total"] == 2

    rename = Mutation(lambda body: api.put(f"/vendors/{first.id}", body),
                      cache=cache, invalidates=[("vendors", first.id)])
    await rename.mutate({"name": "Acme Renamed"})
    assert detail.data.name == "Acme Renamed"

    assert len(cache.subscribers("vendors")) == 3
    assert cache.subscribers("vendors", first.id) == [detail]
    for r in (rows, detail, stats, other):
        await r.close()
    assert cache.subscribers("vendors") == []


@pytest.mark.asyncio
async def test_failed_mutation_captures_error_and_skips_invalidation():
    server = _GatedServer()
    client = _client(server)
    cache = ResourceCache()
    rows = Resource(client, "/items", cache=cache, cache_key=("items", None))
    await rows.start()
    before = len(server.requests)

    async def _fail():
        raise ApiError("Conflict", 409)

    m = Mutation(_fail, cache=cache, invalidates=["items"])
    assert await m.mutate() is None
    assert m.error.status == 409
    assert m.is_loading is False
    assert len(server.requests) == before

    m.reset()
    assert m.error is None
    await client.aclose()
