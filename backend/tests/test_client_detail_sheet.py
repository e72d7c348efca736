"""Client library — DetailSheet view/edit/delete flow and relationship panels."""
import asyncio

import httpx
import pytest

from opengrc.client.api import ApiClient, Credentials
from opengrc.client.detail_sheet import DetailSheet, Relation, SheetState
from opengrc.schemas.control import ControlOut
from opengrc.schemas.evidence import EvidenceOut
from opengrc.schemas.task import TaskCommentOut
from opengrc.schemas.vendor import VendorAssessmentOut, VendorOut


async def _vendor_sheet(api, **kwargs) -> tuple[DetailSheet, int]:
    vid = (await api.post("/vendors", {"name": "Acme", "website": "https://acme.io"}))["id"]
    sheet = DetailSheet(api, "vendors", VendorOut, {
        "assessments": Relation("assessments", model=VendorAssessmentOut),
    }, **kwargs)
    return sheet, vid


@pytest.mark.asyncio
async def test_open_fetches_entity_and_relations(recorded_api):
    api, transport = recorded_api
    sheet, vid = await _vendor_sheet(api)
    assert sheet.state is SheetState.CLOSED

    await sheet.open(vid)
    assert sheet.state is SheetState.VIEWING
    assert sheet.entity.name == "Acme"
    assert sheet.values["website"] == "https://acme.io"
    assert sheet.relations["assessments"].items == []
    assert transport.count("GET", f"/api/v1/vendors/{vid}/assessments") == 1
    await sheet.close()
    assert sheet.state is SheetState.CLOSED
    assert sheet.entity is None


@pytest.mark.asyncio
async def test_open_missing_entity(api):
    sheet = DetailSheet(api, "vendors", VendorOut)
    await sheet.open(9999)
    assert sheet.state is SheetState.LOADING
    assert sheet.is_loading is False
    assert sheet.load_error.status == 404
    with pytest.raises(RuntimeError):
        sheet.edit()
    await sheet.close()


@pytest.mark.asyncio
async def test_cancel_discards_edits_without_network(recorded_api):
    api, transport = recorded_api
    sheet, vid = await _vendor_sheet(api)
    await sheet.open(vid)

    sheet.edit()
    assert sheet.state is SheetState.EDITING
    sheet.update_field("name", "Changed")
    assert sheet.values["name"] == "Changed"

    sent = len(transport.sent)
    sheet.cancel()
    assert sheet.state is SheetState.VIEWING
    assert sheet.values["name"] == "Acme"
    assert len(transport.sent) == sent

    with pytest.raises(RuntimeError):
        sheet.update_field("name", "x")
    await sheet.close()


@pytest.mark.asyncio
async def test_save_failure_stays_in_edit_mode(api):
    sheet, vid = await _vendor_sheet(api)
    await sheet.open(vid)
    sheet.edit()
    sheet.update_field("criticality", "extreme")

    assert await sheet.save() is False
    assert sheet.state is SheetState.EDITING
    assert sheet.error.status == 422
    assert sheet.values["criticality"] == "extreme"

    # Still unchanged on the server
    assert (await api.get(f"/vendors/{vid}"))["criticality"] == "medium"
    await sheet.close()


@pytest.mark.asyncio
async def test_save_success(api):
    changes = []

    async def on_change():
        changes.append(True)

    sheet, vid = await _vendor_sheet(api, on_change=on_change)
    await sheet.open(vid)
    sheet.edit()
    sheet.update_field("name", "Acme Holdings")
    sheet.update_field("criticality", "critical")

    assert await sheet.save() is True
    assert sheet.state is SheetState.VIEWING
    assert sheet.error is None
    assert sheet.entity.name == "Acme Holdings"
    assert sheet.entity.criticality == "critical"
    assert changes == [True]
    await sheet.close()


@pytest.mark.asyncio
async def test_delete_requires_confirmation(recorded_api):
    api, transport = recorded_api
    changes = []

    async def on_change():
        changes.append(True)

    sheet, vid = await _vendor_sheet(api, on_change=on_change)
    await sheet.open(vid)

    assert await sheet.delete(lambda: False) is False
    assert transport.count("DELETE") == 0
    assert sheet.state is SheetState.VIEWING

    assert await sheet.delete(lambda: True) is True
    assert sheet.state is SheetState.CLOSED
    assert changes == [True]
    assert transport.count("DELETE", f"/api/v1/vendors/{vid}") == 1

    from opengrc.client.api import ApiError
    with pytest.raises(ApiError) as info:
        await api.get(f"/vendors/{vid}")
    assert info.value.status == 404


@pytest.mark.asyncio
async def test_delete_failure_keeps_sheet_open():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "DELETE":
            return httpx.Response(500, text="vendor is locked")
        return httpx.Response(200, json={"id": 7, "name": "Acme"})

    client = ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(handler))
    sheet = DetailSheet(client, "vendors")
    await sheet.open(7)
    assert sheet.state is SheetState.VIEWING

    assert await sheet.delete(lambda: True) is False
    assert sheet.state is SheetState.VIEWING
    assert sheet.error.status == 500
    assert sheet.error.message == "vendor is locked"
    assert sheet.entity == {"id": 7, "name": "Acme"}
    await sheet.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_delete_only_from_viewing(recorded_api):
    api, transport = recorded_api
    sheet, vid = await _vendor_sheet(api)
    await sheet.open(vid)
    sheet.edit()

    assert await sheet.delete(lambda: True) is False
    assert sheet.state is SheetState.EDITING

    await sheet.open(9999)
    assert sheet.state is SheetState.LOADING
    assert await sheet.delete(lambda: True) is False
    assert transport.count("DELETE") == 0
    await sheet.close()


@pytest.mark.asyncio
async def test_opening_another_row_while_loading():
    arrived = asyncio.Event()
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        vid = int(request.url.path.rsplit("/", 1)[-1])
        if vid == 1:
            arrived.set()
            await release.wait()
        return httpx.Response(200, json={"id": vid, "name": f"Vendor {vid}"})

    client = ApiClient("http://grc.local/api/v1", Credentials(), transport=httpx.MockTransport(handler))
    sheet = DetailSheet(client, "vendors")

    first = asyncio.ensure_future(sheet.open(1))
    await arrived.wait()
    await sheet.open(2)
    release.set()

    assert await first is None
    assert sheet.state is SheetState.VIEWING
    assert sheet.entity_id == 2
    assert sheet.entity == {"id": 2, "name": "Vendor 2"}
    await sheet.close()
    await client.aclose()


@pytest.mark.asyncio
async def test_owned_child_records(api):
    sheet, vid = await _vendor_sheet(api)
    await sheet.open(vid)
    assessments = sheet.relations["assessments"]

    assert await assessments.create({"assessment_type": "initial", "risk_rating": "high"}) is True
    assert [a.risk_rating for a in assessments.items] == ["high"]

    assert await assessments.create({"assessment_type": "bogus"}) is False
    assert assessments.error.status == 422
    assert len(assessments.items) == 1

    with pytest.raises(TypeError):
        await assessments.add([1])
    await sheet.close()


@pytest.mark.asyncio
async def test_task_comments_panel(api):
    tid = (await api.post("/tasks", {"title": "Collect evidence"}))["id"]
    sheet = DetailSheet(api, "tasks", relations={
        "comments": Relation("comments", model=TaskCommentOut),
    })
    await sheet.open(tid)
    comments = sheet.relations["comments"]
    await comments.create({"content": "Started", "author": "alice"})
    await comments.create({"content": "Done"})
    assert [c.content for c in comments.items] == ["Started", "Done"]
    await sheet.close()


@pytest.mark.asyncio
async def test_mapping_relation_add_and_remove(api, seed_framework, seed_control):
    sheet = DetailSheet(api, "controls", ControlOut, {
        "requirements": Relation("requirements", ids_field="requirement_ids", embedded="mapped_requirements"),
    })
    await sheet.open(seed_control)
    reqs = sheet.relations["requirements"]
    assert reqs.items == []

    assert await reqs.add([seed_framework["cc11"], seed_framework["cc21"]]) is True
    assert reqs.existing_ids == {seed_framework["cc11"], seed_framework["cc21"]}
    assert sheet.entity.requirement_count == 2

    assert await reqs.remove(seed_framework["cc11"]) is True
    assert reqs.existing_ids == {seed_framework["cc21"]}

    # Only the association went away
    fw_reqs = await api.get(f"/frameworks/{seed_framework['fw_id']}/requirements")
    assert seed_framework["cc11"] in {r["id"] for r in fw_reqs}

    assert await reqs.add([9999]) is False
    assert reqs.error.status == 404

    with pytest.raises(TypeError):
        await reqs.create({"code": "x"})
    await sheet.close()


@pytest.mark.asyncio
async def test_evidence_sheet_links_controls(api, seed_control):
    eid = (await api.post("/evidence", {"title": "Quarterly access review", "evidence_type": "report"}))["id"]
    sheet = DetailSheet(api, "evidence", EvidenceOut, {
        "controls": Relation("controls", ids_field="control_ids", embedded="linked_controls"),
    })
    await sheet.open(eid)
    controls = sheet.relations["controls"]
    assert controls.items == []

    assert await controls.add([seed_control]) is True
    assert controls.existing_ids == {seed_control}
    assert sheet.entity.linked_control_count == 1

    assert await controls.remove(seed_control) is True
    assert controls.items == []
    await sheet.close()
