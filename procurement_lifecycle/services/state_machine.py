"""
Procurement request state machine.

    DRAFT ──submit──▶ SUBMITTED ──approve──▶ APPROVED ──purchase──▶ PURCHASED ──complete──▶ COMPLETED
                          └──────reject──▶ REJECTED

Drafts can also be edited (stays DRAFT) or deleted (removed). Proof uploads
happen while PURCHASED and do not change status. COMPLETED and REJECTED
expose no further actions.

Guards come in two kinds: snapshot guards, which only need the request as last
fetched (proofs on complete), and input guards, which check what the caller
passes in (remarks, files, form fields, draft items on submit). Both raise
before any network call is made.
"""

from enum import Enum
from pathlib import PurePath
from typing import Callable, Iterable, Optional

from procurement_lifecycle.exceptions import (
    InvalidStateError,
    PreconditionError,
    ValidationError,
)
from procurement_lifecycle.schemas.procurement import ProcurementStatus, ProofType

S = ProcurementStatus


class Action(str, Enum):
    EDIT = "edit"
    DELETE = "delete"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    PURCHASE = "purchase"
    UPLOAD_PROOF = "upload-proof"
    COMPLETE = "complete"


# (from, action) -> to. None means the request is removed.
TRANSITIONS: dict[tuple[ProcurementStatus, Action], Optional[ProcurementStatus]] = {
    (S.DRAFT, Action.EDIT): S.DRAFT,
    (S.DRAFT, Action.DELETE): None,
    (S.DRAFT, Action.SUBMIT): S.SUBMITTED,
    (S.SUBMITTED, Action.APPROVE): S.APPROVED,
    (S.SUBMITTED, Action.REJECT): S.REJECTED,
    (S.APPROVED, Action.PURCHASE): S.PURCHASED,
    (S.PURCHASED, Action.UPLOAD_PROOF): S.PURCHASED,
    (S.PURCHASED, Action.COMPLETE): S.COMPLETED,
}

TERMINAL_STATUSES = frozenset(
    s for s in ProcurementStatus if not any(src == s for src, _ in TRANSITIONS)
)

MSG_TITLE_REQUIRED = "Title is required"
MSG_ALLOCATION_REQUIRED = "Please select a budget allocation"
MSG_ITEMS_REQUIRED = "At least one item is required"
MSG_ITEM_NAME = "All items must have a name"
MSG_ITEM_UNIT = "All items must have a unit (pcs, box, kg, etc.)"
MSG_ITEM_POSITIVE = "Quantity and unit cost must be greater than zero"
MSG_REMARKS_REQUIRED = "Remarks are required when rejecting a request."
MSG_PROOF_FILE_REQUIRED = "Please select a file to upload."
MSG_PROOF_TYPE_REQUIRED = "Please select a proof type."
MSG_PROOF_REQUIRED = "Upload at least one proof of purchase before completing this request."


def required_statuses(action: Action) -> list[ProcurementStatus]:
    return [src for (src, act) in TRANSITIONS if act == action]


def can_transition(status: ProcurementStatus, action: Action) -> bool:
    return (status, action) in TRANSITIONS


def next_status(status: ProcurementStatus, action: Action) -> Optional[ProcurementStatus]:
    """Return the status reached by `action`, or raise InvalidStateError."""
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        allowed = ", ".join(s.value for s in required_statuses(action)) or "no"
        raise InvalidStateError(
            f"Can only {action.value.replace('-', ' ')} procurement requests in {allowed} status"
            f" (current status: {status.value})"
        ) from None


# ---------------------------------------------------------------------------
# Input guards
# ---------------------------------------------------------------------------


def item_problems(items) -> list[str]:
    """Every item rule the given items break, in the order the form reports them."""
    items = list(items or [])
    if not items:
        return [MSG_ITEMS_REQUIRED]

    problems = []
    if any(not (item.name or "").strip() for item in items):
        problems.append(MSG_ITEM_NAME)
    if any(not (item.unit or "").strip() for item in items):
        problems.append(MSG_ITEM_UNIT)
    if any(item.quantity <= 0 or item.unit_cost <= 0 for item in items):
        problems.append(MSG_ITEM_POSITIVE)
    return problems


def validate_items(items) -> None:
    problems = item_problems(items)
    if problems:
        raise ValidationError(problems[0])


def validate_form(title: Optional[str], items, allocation_id=None, require_allocation: bool = False) -> None:
    if not (title or "").strip():
        raise ValidationError(MSG_TITLE_REQUIRED)
    if require_allocation and not allocation_id:
        raise ValidationError(MSG_ALLOCATION_REQUIRED)
    validate_items(items)


def validate_remarks(action: Action, remarks: Optional[str]) -> Optional[str]:
    """Trimmed remarks; rejecting requires them, approving does not."""
    cleaned = (remarks or "").strip()
    if action == Action.REJECT and not cleaned:
        raise ValidationError(MSG_REMARKS_REQUIRED)
    return cleaned or None


def validate_proof(filename: Optional[str], proof_type, allowed_extensions: Iterable[str]) -> ProofType:
    if not filename:
        raise ValidationError(MSG_PROOF_FILE_REQUIRED)
    if not proof_type:
        raise ValidationError(MSG_PROOF_TYPE_REQUIRED)
    try:
        resolved = ProofType(proof_type)
    except ValueError:
        raise ValidationError(
            f"Unknown proof type '{proof_type}'. Expected one of: "
            + ", ".join(t.value for t in ProofType)
        ) from None

    allowed = [e.lower() for e in allowed_extensions]
    suffix = PurePath(filename).suffix.lower()
    if allowed and suffix not in allowed:
        raise ValidationError(f"Proof file must be one of: {', '.join(allowed)}")
    return resolved


# ---------------------------------------------------------------------------
# Snapshot guards
# ---------------------------------------------------------------------------


def _guard_complete(request) -> None:
    if not request.proofs:
        raise PreconditionError(MSG_PROOF_REQUIRED)


SNAPSHOT_GUARDS: dict[Action, Callable] = {
    Action.COMPLETE: _guard_complete,
}


def check_transition(request, action: Action) -> Optional[ProcurementStatus]:
    """Validate `action` against a request snapshot; return the target status."""
    target = next_status(request.status, action)
    guard = SNAPSHOT_GUARDS.get(action)
    if guard is not None:
        guard(request)
    return target


def allowed_actions(request) -> list[Action]:
    """Actions the caller may offer for this snapshot, in table order."""
    actions = []
    for (src, action) in TRANSITIONS:
        if src != request.status:
            continue
        guard = SNAPSHOT_GUARDS.get(action)
        if guard is not None:
            try:
                guard(request)
            except (ValidationError, PreconditionError):
                continue
        actions.append(action)
    return actions
