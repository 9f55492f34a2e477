"""
Procurement lifecycle manager.

Drives a procurement request through DRAFT → SUBMITTED → APPROVED/REJECTED →
PURCHASED → COMPLETED against the portal API. The server is the source of
truth: nothing is applied locally before the server confirms it, and every
call is followed by a re-fetch of the current view.

The manager keeps the last fetched page as a snapshot cache so it can refuse
transitions the known state does not allow without a round trip. A snapshot
that blocks a call is re-fetched once before the error is raised, since
statuses only move forward and a stale snapshot can only be behind.

Budget usage is never touched here: completing a request asks the server to
complete it, and the server books the amount against the allocation.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError
import structlog

from procurement_lifecycle.config import settings
from procurement_lifecycle.exceptions import (
    InvalidStateError,
    PreconditionError,
    ProcurementError,
    ValidationError,
)
from procurement_lifecycle.schemas.budget import BudgetAllocation
from procurement_lifecycle.schemas.common import Page
from procurement_lifecycle.schemas.procurement import (
    ProcurementCreate,
    ProcurementDraft,
    ProcurementItemInput,
    ProcurementRequest,
    ProcurementStatus,
    ProcurementUpdate,
    ProofType,
    RemarksRequest,
    compute_amount,
)
from procurement_lifecycle.services import state_machine
from procurement_lifecycle.services.audit_service import AuditTrail, snapshot_state
from procurement_lifecycle.services.budget_api import (
    BudgetAllocationClient,
    warn_if_over_balance,
)
from procurement_lifecycle.services.procurement_api import (
    ProcurementApiClient,
    build_http_client,
)
from procurement_lifecycle.services.state_machine import Action

logger = structlog.get_logger()

ProofFile = Union[str, Path, tuple]


@dataclass
class ViewQuery:
    status: Optional[ProcurementStatus] = None
    q: Optional[str] = None
    page: int = 1
    limit: Optional[int] = None


def _coerce_items(items) -> list[ProcurementItemInput]:
    try:
        return [
            item if isinstance(item, ProcurementItemInput) else ProcurementItemInput.model_validate(item)
            for item in (items or [])
        ]
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"Invalid item {field}: {first.get('msg')}") from exc


def _read_proof_file(file: Optional[ProofFile]) -> tuple[Optional[str], bytes, str]:
    """Normalise a path or a (filename, content[, content_type]) tuple."""
    if file is None or file == "":
        return None, b"", ""
    if isinstance(file, tuple):
        if len(file) < 2:
            raise ValidationError(state_machine.MSG_PROOF_FILE_REQUIRED)
        filename, content = file[0], file[1]
        content_type = file[2] if len(file) > 2 else None
    else:
        path = Path(file)
        if not path.is_file():
            raise ValidationError(f"Proof file not found: {path}")
        filename, content, content_type = path.name, path.read_bytes(), None
    content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return filename, content, content_type


class ProcurementLifecycleManager:
    def __init__(
        self,
        api: ProcurementApiClient,
        budgets: Optional[BudgetAllocationClient] = None,
        audit: Optional[AuditTrail] = None,
        proof_extensions: Optional[Iterable[str]] = None,
    ):
        self.api = api
        self.budgets = budgets
        self.audit = audit or AuditTrail()
        self.proof_extensions = list(
            proof_extensions if proof_extensions is not None else settings.proof_extensions_list
        )
        self.view = ViewQuery()
        self.last_page: Optional[Page[ProcurementRequest]] = None
        self._snapshots: dict[int, ProcurementRequest] = {}
        self._http = None

    @classmethod
    def from_settings(cls, token: Optional[str] = None) -> "ProcurementLifecycleManager":
        http = build_http_client(token=token)
        manager = cls(
            ProcurementApiClient(http),
            BudgetAllocationClient(http),
            audit=AuditTrail(),
        )
        manager._http = http
        return manager

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    async def list_requests(
        self,
        status: Optional[ProcurementStatus] = None,
        q: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page[ProcurementRequest]:
        """Search requests and make the query the current view."""
        self.view = ViewQuery(
            status=ProcurementStatus(status) if status else None,
            q=q or None,
            page=page,
            limit=limit,
        )
        return await self.refresh()

    async def refresh(self) -> Page[ProcurementRequest]:
        """Re-run the current view's query and replace the snapshot cache."""
        result = await self.api.list_requests(
            status=self.view.status,
            q=self.view.q,
            page=self.view.page,
            limit=self.view.limit,
        )
        self.last_page = result
        self._snapshots = {r.id: r for r in result.data}
        logger.debug("procurement_view_refreshed", count=len(result.data), status=self.view.status)
        return result

    def get_snapshot(self, request_id: int) -> Optional[ProcurementRequest]:
        return self._snapshots.get(request_id)

    def allowed_actions(self, request: Union[int, ProcurementRequest]) -> list[Action]:
        """Actions available for a request as last seen; empty when unknown."""
        if isinstance(request, int):
            request = self._snapshots.get(request)
            if request is None:
                return []
        return state_machine.allowed_actions(request)

    async def get_draft(self, request_id: int) -> ProcurementDraft:
        return await self.api.get_draft(request_id)

    async def allocation_options(self) -> list[BudgetAllocation]:
        if self.budgets is None:
            return []
        return await self.budgets.all_allocations()

    # ------------------------------------------------------------------
    # Draft editing
    # ------------------------------------------------------------------

    async def create(
        self,
        title: str,
        description: Optional[str],
        allocation_id: Optional[int],
        items,
    ) -> Optional[ProcurementRequest]:
        items = _coerce_items(items)
        state_machine.validate_form(title, items, allocation_id, require_allocation=True)
        payload = ProcurementCreate(
            title=title.strip(),
            description=description or "",
            allocation_id=allocation_id,
            items=items,
        )
        await self._warn_if_over_balance(allocation_id, compute_amount(items))

        return await self._dispatch("create", None, lambda: self.api.create(payload))

    async def update(
        self,
        request_id: int,
        title: str,
        description: Optional[str],
        items,
    ) -> Optional[ProcurementRequest]:
        items = _coerce_items(items)
        state_machine.validate_form(title, items)
        await self._guard(request_id, Action.EDIT)
        payload = ProcurementUpdate(title=title.strip(), description=description or "", items=items)

        return await self._dispatch(
            Action.EDIT.value, request_id, lambda: self.api.update(request_id, payload)
        )

    async def delete(self, request_id: int) -> None:
        await self._guard(request_id, Action.DELETE)
        await self._dispatch(Action.DELETE.value, request_id, lambda: self.api.delete(request_id))
        self._snapshots.pop(request_id, None)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def submit(self, request_id: int) -> Optional[ProcurementRequest]:
        await self._guard(request_id, Action.SUBMIT)
        draft = await self.api.get_draft(request_id)
        state_machine.next_status(draft.status, Action.SUBMIT)
        state_machine.validate_items(draft.items)
        return await self._transition(request_id, Action.SUBMIT)

    async def approve(self, request_id: int, remarks: Optional[str] = None) -> Optional[ProcurementRequest]:
        cleaned = state_machine.validate_remarks(Action.APPROVE, remarks)
        await self._guard(request_id, Action.APPROVE)
        return await self._transition(request_id, Action.APPROVE, RemarksRequest(remarks=cleaned))

    async def reject(self, request_id: int, remarks: Optional[str]) -> Optional[ProcurementRequest]:
        cleaned = state_machine.validate_remarks(Action.REJECT, remarks)
        await self._guard(request_id, Action.REJECT)
        return await self._transition(request_id, Action.REJECT, RemarksRequest(remarks=cleaned))

    async def mark_purchased(self, request_id: int) -> Optional[ProcurementRequest]:
        await self._guard(request_id, Action.PURCHASE)
        return await self._transition(request_id, Action.PURCHASE)

    async def upload_proof(
        self,
        request_id: int,
        file: Optional[ProofFile],
        proof_type: Optional[Union[str, ProofType]],
        description: Optional[str] = None,
    ) -> Optional[ProcurementRequest]:
        if isinstance(file, tuple):
            filename = file[0] if file else None
        else:
            filename = Path(file).name if file else None
        resolved = state_machine.validate_proof(filename, proof_type, self.proof_extensions)
        filename, content, content_type = _read_proof_file(file)
        await self._guard(request_id, Action.UPLOAD_PROOF)

        return await self._dispatch(
            Action.UPLOAD_PROOF.value,
            request_id,
            lambda: self.api.upload_proof(
                request_id,
                filename,
                content,
                content_type,
                resolved.value,
                (description or "").strip() or None,
            ),
        )

    async def complete(self, request_id: int) -> Optional[ProcurementRequest]:
        await self._guard(request_id, Action.COMPLETE)
        return await self._transition(request_id, Action.COMPLETE)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _guard(self, request_id: int, action: Action) -> None:
        """
        Check `action` against the known snapshot. An unknown request is left
        to the server; a blocking snapshot is re-fetched once before raising.
        """
        snapshot = self._snapshots.get(request_id)
        if snapshot is None:
            return
        try:
            state_machine.check_transition(snapshot, action)
            return
        except (InvalidStateError, PreconditionError):
            await self.refresh()

        snapshot = self._snapshots.get(request_id)
        if snapshot is not None:
            state_machine.check_transition(snapshot, action)

    async def _transition(
        self, request_id: int, action: Action, remarks: Optional[RemarksRequest] = None
    ) -> Optional[ProcurementRequest]:
        return await self._dispatch(
            action.value,
            request_id,
            lambda: self.api.transition(request_id, action.value, remarks),
        )

    async def _dispatch(
        self,
        action: str,
        request_id: Optional[int],
        call: Callable[[], Awaitable],
    ) -> Optional[ProcurementRequest]:
        before = snapshot_state(self._snapshots.get(request_id)) if request_id is not None else None
        logger.info("procurement_action_dispatched", action=action, request_id=request_id)

        try:
            response = await call()
        except ProcurementError as exc:
            self.audit.record(action, request_id, "failed", before_state=before, message=exc.message)
            logger.warning(
                "procurement_action_failed",
                action=action,
                request_id=request_id,
                error=type(exc).__name__,
                message=exc.message,
            )
            raise

        returned = response if isinstance(response, ProcurementRequest) else None
        if request_id is None and returned is not None:
            request_id = returned.id

        # The server has applied the call, so a failed re-fetch is only logged.
        refresh_error = None
        try:
            await self.refresh()
        except ProcurementError as exc:
            refresh_error = exc.message
            logger.warning(
                "procurement_view_refresh_failed",
                action=action,
                request_id=request_id,
                message=exc.message,
            )
            if request_id is not None:
                self._snapshots.pop(request_id, None)

        current = self._snapshots.get(request_id) if request_id is not None else None
        if current is None and returned is not None and action != Action.DELETE.value:
            current = returned
            self._snapshots[returned.id] = returned

        self.audit.record(
            action,
            request_id,
            "ok",
            before_state=before,
            after_state=snapshot_state(current),
            message=refresh_error,
        )

        logger.info(
            "procurement_action_succeeded",
            action=action,
            request_id=request_id,
            status=current.status.value if current else None,
        )
        return current

    async def _warn_if_over_balance(self, allocation_id: int, amount) -> None:
        if self.budgets is None:
            return
        try:
            allocation = await self.budgets.find(allocation_id)
        except ProcurementError as exc:
            logger.warning("allocation_lookup_failed", allocation_id=allocation_id, message=exc.message)
            return
        warn_if_over_balance(allocation, amount)
