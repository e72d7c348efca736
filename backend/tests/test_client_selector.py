"""Client library — RelationshipSelector against a control's requirement mappings."""
import pytest

from opengrc.client.api import ApiError
from opengrc.client.detail_sheet import DetailSheet, Relation
from opengrc.client.selector import RelationshipSelector
from opengrc.schemas.control import ControlOut
from opengrc.schemas.framework import RequirementOut


async def _control_sheet(api, control_id):
    sheet = DetailSheet(api, "controls", ControlOut, {
        "requirements": Relation("requirements", ids_field="requirement_ids", embedded="mapped_requirements"),
    })
    await sheet.open(control_id)
    return sheet


def _selector(api, relation, submit=None):
    async def load(fw_id):
        return await api.get(f"/frameworks/{fw_id}/requirements", model=list[RequirementOut])

    return RelationshipSelector(load, lambda: relation.existing_ids, submit or relation.add)


@pytest.mark.asyncio
async def test_existing_mappings_are_excluded(api, seed_framework, seed_control):
    sheet = await _control_sheet(api, seed_control)
    reqs = sheet.relations["requirements"]
    await reqs.add([seed_framework["cc11"]])

    sel = _selector(api, reqs)
    await sel.open(seed_framework["fw_id"])
    assert sel.is_open
    assert len(sel.candidates) == 5
    codes = [r.code for r in sel.available]
    assert "CC1.1" not in codes
    assert len(codes) == 4

    sel.toggle(seed_framework["cc11"])
    assert sel.selected == set()
    await sheet.close()


@pytest.mark.asyncio
async def test_search_grouping_and_select_all(api, seed_framework, seed_control):
    sheet = await _control_sheet(api, seed_control)
    sel = _selector(api, sheet.relations["requirements"])
    await sel.open(seed_framework["fw_id"])

    groups = sel.grouped()
    assert {k: [r.code for r in v] for k, v in groups.items()} == {
        "Common Criteria": ["CC1", "CC2"],
        "Governance": ["CC1.1", "CC1.2"],
        "Information": ["CC2.1"],
    }

    sel.set_search("  BOARD ")
    assert [r.code for r in sel.available] == ["CC1.2"]

    sel.set_search("cc1.")
    sel.select_all()
    assert sel.selected == {seed_framework["cc11"], seed_framework["cc12"]}

    sel.toggle(seed_framework["cc11"])
    assert sel.selected == {seed_framework["cc12"]}
    sel.clear_all()
    assert sel.selected == set()
    await sheet.close()


@pytest.mark.asyncio
async def test_confirm_sends_batch_and_resets(recorded_api, seed_framework, seed_control):
    api, transport = recorded_api
    sheet = await _control_sheet(api, seed_control)
    reqs = sheet.relations["requirements"]
    sel = _selector(api, reqs)

    await sel.open(seed_framework["fw_id"])
    assert await sel.confirm() is False
    assert sel.is_open

    sel.toggle(seed_framework["cc12"])
    sel.toggle(seed_framework["cc21"])
    assert await sel.confirm() is True
    assert transport.count("POST", f"/api/v1/controls/{seed_control}/requirements") == 1

    assert not sel.is_open
    assert sel.selected == set()
    assert sel.context is None
    assert sel.candidates == []
    assert reqs.existing_ids == {seed_framework["cc12"], seed_framework["cc21"]}

    # Removing a mapping makes the requirement selectable again
    await reqs.remove(seed_framework["cc12"])
    await sel.open(seed_framework["fw_id"])
    assert seed_framework["cc12"] in {r.id for r in sel.available}
    assert seed_framework["cc21"] not in {r.id for r in sel.available}
    await sheet.close()


@pytest.mark.asyncio
async def test_failed_submit_keeps_dialog_open(api, seed_framework, seed_control):
    sheet = await _control_sheet(api, seed_control)
    reqs = sheet.relations["requirements"]

    async def failing(ids):
        raise ApiError("Server error", 500)

    sel = _selector(api, reqs, submit=failing)
    await sel.open(seed_framework["fw_id"])
    sel.toggle(seed_framework["cc11"])
    assert await sel.confirm() is False
    assert sel.is_open
    assert sel.error.status == 500
    assert sel.selected == {seed_framework["cc11"]}

    async def rejected(ids):
        return False

    sel2 = _selector(api, reqs, submit=rejected)
    await sel2.open(seed_framework["fw_id"])
    sel2.toggle(seed_framework["cc11"])
    assert await sel2.confirm() is False
    assert sel2.is_open
    await sheet.close()


@pytest.mark.asyncio
async def test_context_switch_and_load_error(api, seed_framework, seed_control):
    sheet = await _control_sheet(api, seed_control)
    sel = _selector(api, sheet.relations["requirements"])

    await sel.open()
    assert sel.context is None
    assert sel.candidates == []

    await sel.choose_context(seed_framework["fw_id"])
    sel.toggle(seed_framework["cc11"])
    sel.set_search("cc")

    await sel.choose_context(9999)
    assert sel.error.status == 404
    assert sel.candidates == []
    assert sel.selected == set()
    assert sel.search == ""
    assert sel.is_loading is False

    sel.close()
    assert not sel.is_open
    assert sel.error is None
    await sheet.close()
