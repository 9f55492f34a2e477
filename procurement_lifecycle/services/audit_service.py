"""Audit trail: records what each lifecycle call saw before and after."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

logger = structlog.get_logger()


@dataclass
class AuditEntry:
    action: str
    entity_id: Optional[int]
    outcome: str
    before_state: Optional[dict] = None
    after_state: Optional[dict] = None
    changed_fields: Optional[list[str]] = None
    actor: Optional[str] = None
    message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def snapshot_state(request) -> Optional[dict]:
    """Reduce a ProcurementRequest to the fields worth diffing."""
    if request is None:
        return None
    allocation = request.allocation
    return {
        "status": request.status.value,
        "title": request.title,
        "amount": str(request.amount),
        "items": len(request.items),
        "proofs": len(request.proofs),
        "used_amount": str(allocation.used_amount) if allocation else None,
    }


def _compute_changed_fields(
    before: Optional[dict], after: Optional[dict]
) -> Optional[list[str]]:
    """Diff two state dicts and return list of changed field names."""
    if not before or not after:
        return None
    changed = []
    all_keys = set(before.keys()) | set(after.keys())
    for key in sorted(all_keys):
        if before.get(key) != after.get(key):
            changed.append(key)
    return changed or None


class AuditTrail:
    def __init__(self, max_entries: int = 1000, actor: Optional[str] = None):
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self.actor = actor

    def record(
        self,
        action: str,
        entity_id: Optional[int],
        outcome: str,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None,
        message: Optional[str] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            action=action,
            entity_id=entity_id,
            outcome=outcome,
            before_state=before_state,
            after_state=after_state,
            changed_fields=_compute_changed_fields(before_state, after_state),
            actor=self.actor,
            message=message,
        )
        self._entries.append(entry)

        logger.info(
            "audit_log_created",
            action=action,
            entity_id=entity_id,
            outcome=outcome,
            changed_fields=entry.changed_fields,
            actor=self.actor,
        )
        return entry

    def entries(self, entity_id: Optional[int] = None) -> list[AuditEntry]:
        if entity_id is None:
            return list(self._entries)
        return [e for e in self._entries if e.entity_id == entity_id]

    def __len__(self) -> int:
        return len(self._entries)
