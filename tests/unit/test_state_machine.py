"""
Unit tests for procurement_lifecycle/services/state_machine.py

Pure functions only, no HTTP. Tests: transition table, guards,
allowed_actions.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from procurement_lifecycle.exceptions import (
    InvalidStateError,
    PreconditionError,
    ValidationError,
)
from procurement_lifecycle.schemas.procurement import (
    ProcurementItemInput,
    ProcurementStatus as S,
    ProofType,
)
from procurement_lifecycle.services.state_machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    Action,
    allowed_actions,
    can_transition,
    check_transition,
    item_problems,
    next_status,
    validate_form,
    validate_items,
    validate_proof,
    validate_remarks,
)

EXTENSIONS = [".pdf", ".jpg", ".jpeg", ".png"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _item(name="Ballpen", unit="box", quantity=1, unit_cost="10"):
    return ProcurementItemInput(name=name, unit=unit, quantity=quantity, unit_cost=Decimal(unit_cost))


def _request(status, proofs=()):
    return SimpleNamespace(status=status, proofs=list(proofs), items=[])


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "status, action, expected",
    [
        (S.DRAFT, Action.SUBMIT, S.SUBMITTED),
        (S.DRAFT, Action.EDIT, S.DRAFT),
        (S.DRAFT, Action.DELETE, None),
        (S.SUBMITTED, Action.APPROVE, S.APPROVED),
        (S.SUBMITTED, Action.REJECT, S.REJECTED),
        (S.APPROVED, Action.PURCHASE, S.PURCHASED),
        (S.PURCHASED, Action.UPLOAD_PROOF, S.PURCHASED),
        (S.PURCHASED, Action.COMPLETE, S.COMPLETED),
    ],
)
def test_allowed_transitions(status, action, expected):
    assert can_transition(status, action)
    assert next_status(status, action) == expected


def test_every_other_pair_is_refused():
    for status in S:
        for action in Action:
            if (status, action) in TRANSITIONS:
                continue
            with pytest.raises(InvalidStateError):
                next_status(status, action)


def test_refusal_names_the_required_status():
    with pytest.raises(InvalidStateError) as excinfo:
        next_status(S.DRAFT, Action.APPROVE)
    assert "SUBMITTED" in excinfo.value.message
    assert "current status: DRAFT" in excinfo.value.message


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {S.COMPLETED, S.REJECTED}


# ---------------------------------------------------------------------------
# Item and form guards
# ---------------------------------------------------------------------------


def test_valid_items_pass():
    validate_items([_item(), _item(name="Paper", unit="ream", quantity=3, unit_cost="250.75")])


@pytest.mark.parametrize(
    "item, message",
    [
        (_item(name="  "), "All items must have a name"),
        (_item(unit=""), "All items must have a unit (pcs, box, kg, etc.)"),
        (_item(quantity=0), "Quantity and unit cost must be greater than zero"),
        (_item(quantity=-2), "Quantity and unit cost must be greater than zero"),
        (_item(unit_cost="0"), "Quantity and unit cost must be greater than zero"),
    ],
)
def test_malformed_item_is_rejected(item, message):
    with pytest.raises(ValidationError) as excinfo:
        validate_items([_item(), item])
    assert excinfo.value.message == message


def test_empty_items_rejected():
    with pytest.raises(ValidationError, match="At least one item"):
        validate_items([])
    assert item_problems(None) == ["At least one item is required"]


def test_item_problems_lists_every_rule_broken():
    problems = item_problems([_item(name="", unit="", quantity=0)])
    assert len(problems) == 3


def test_form_requires_title_and_allocation_on_create():
    with pytest.raises(ValidationError, match="Title is required"):
        validate_form("", [_item()], 1, require_allocation=True)
    with pytest.raises(ValidationError, match="budget allocation"):
        validate_form("Supplies", [_item()], None, require_allocation=True)
    validate_form("Supplies", [_item()])


# ---------------------------------------------------------------------------
# Remarks and proofs
# ---------------------------------------------------------------------------


def test_reject_requires_remarks():
    with pytest.raises(ValidationError):
        validate_remarks(Action.REJECT, " \t ")
    assert validate_remarks(Action.REJECT, "  wrong vendor ") == "wrong vendor"


def test_approve_never_requires_remarks():
    assert validate_remarks(Action.APPROVE, None) is None
    assert validate_remarks(Action.APPROVE, "   ") is None
    assert validate_remarks(Action.APPROVE, "ok") == "ok"


def test_proof_requires_file_and_type():
    with pytest.raises(ValidationError, match="file"):
        validate_proof(None, "OR", EXTENSIONS)
    with pytest.raises(ValidationError, match="proof type"):
        validate_proof("or.pdf", None, EXTENSIONS)
    with pytest.raises(ValidationError, match="Unknown proof type"):
        validate_proof("or.pdf", "WAYBILL", EXTENSIONS)


def test_proof_extension_checked_case_insensitively():
    assert validate_proof("SCAN.PDF", "INV", EXTENSIONS) is ProofType.INV
    with pytest.raises(ValidationError, match="must be one of"):
        validate_proof("scan.docx", "INV", EXTENSIONS)


# ---------------------------------------------------------------------------
# Snapshot guards and allowed actions
# ---------------------------------------------------------------------------


def test_complete_requires_a_proof():
    with pytest.raises(PreconditionError):
        check_transition(_request(S.PURCHASED), Action.COMPLETE)
    assert check_transition(_request(S.PURCHASED, proofs=["or"]), Action.COMPLETE) == S.COMPLETED


def test_complete_only_from_purchased():
    with pytest.raises(InvalidStateError):
        check_transition(_request(S.APPROVED, proofs=["or"]), Action.COMPLETE)


@pytest.mark.parametrize(
    "status, proofs, expected",
    [
        (S.DRAFT, [], [Action.EDIT, Action.DELETE, Action.SUBMIT]),
        (S.SUBMITTED, [], [Action.APPROVE, Action.REJECT]),
        (S.APPROVED, [], [Action.PURCHASE]),
        (S.PURCHASED, [], [Action.UPLOAD_PROOF]),
        (S.PURCHASED, ["or"], [Action.UPLOAD_PROOF, Action.COMPLETE]),
        (S.REJECTED, [], []),
        (S.COMPLETED, ["or"], []),
    ],
)
def test_allowed_actions(status, proofs, expected):
    assert allowed_actions(_request(status, proofs)) == expected
