import pytest

from procurement_lifecycle.schemas.procurement import ProcurementDraft

from scripts.cleanup_malformed_drafts import draft_problems, find_malformed
from scripts.submit_all_drafts import submit_drafts


@pytest.mark.asyncio
async def test_submit_all_drafts_reports_failures(manager, portal):
    good = portal.seed_request(title="Good draft")
    bad = portal.seed_request(
        title="Bad draft", items=[{"name": "", "unit": "pc", "quantity": 1, "unitCost": 10}]
    )
    already = portal.seed_request(status="SUBMITTED", title="Already submitted")

    submitted, failed = await submit_drafts(manager)

    assert submitted == [good["id"]]
    assert failed == [bad["id"]]
    assert portal.requests[good["id"]]["status"] == "SUBMITTED"
    assert portal.requests[bad["id"]]["status"] == "DRAFT"
    assert portal.requests[already["id"]]["status"] == "SUBMITTED"


@pytest.mark.asyncio
async def test_submit_all_drafts_dry_run_changes_nothing(manager, portal):
    portal.seed_request(title="Draft")

    submitted, failed = await submit_drafts(manager, dry_run=True)

    assert submitted == [] and failed == []
    assert portal.transition_calls() == []


@pytest.mark.asyncio
async def test_find_malformed_drafts(manager, portal):
    portal.seed_request(title="Fine")
    broken = portal.seed_request(
        title="Broken", items=[{"name": "Desk", "unit": "", "quantity": 1, "unitCost": 0}]
    )

    drafts, malformed = await find_malformed(manager)

    assert len(drafts) == 2
    assert [d.id for d, _ in malformed] == [broken["id"]]
    reasons = malformed[0][1]
    assert "All items must have a unit (pcs, box, kg, etc.)" in reasons
    assert "non_positive_total" in reasons


def test_draft_problems_flags_missing_title_and_items():
    assert draft_problems(ProcurementDraft(title="", items=[])) == [
        "At least one item is required",
        "missing_title",
    ]


@pytest.mark.asyncio
async def test_submit_all_drafts_survives_null_item_fields(manager, portal):
    legacy = portal.seed_request(title="Legacy draft")
    legacy["items"][0]["unit"] = None
    good = portal.seed_request(title="Good draft")

    submitted, failed = await submit_drafts(manager)

    assert submitted == [good["id"]]
    assert failed == [legacy["id"]]
    assert portal.requests[legacy["id"]]["status"] == "DRAFT"


@pytest.mark.asyncio
async def test_find_malformed_reports_null_fields(manager, portal):
    legacy = portal.seed_request(title="Legacy draft")
    legacy["items"][0]["name"] = None

    _, malformed = await find_malformed(manager)

    assert [d.id for d, _ in malformed] == [legacy["id"]]
    assert "All items must have a name" in malformed[0][1]
