#!/usr/bin/env python3
"""
Identify and optionally delete malformed draft procurement requests.

A draft is malformed when it could never be submitted: no items, an item
without name or unit, a non-positive quantity or unit cost, or a non-positive
total. Drafts are hard-deleted, as drafts have no archive state.

Usage:
  python -m scripts.cleanup_malformed_drafts           # dry-run
  python -m scripts.cleanup_malformed_drafts --apply   # delete malformed drafts
"""

import argparse
import asyncio
from typing import Optional

from procurement_lifecycle.exceptions import ProcurementError
from procurement_lifecycle.logging_config import setup_logging
from procurement_lifecycle.schemas.procurement import ProcurementDraft, compute_amount
from procurement_lifecycle.services.lifecycle_manager import ProcurementLifecycleManager
from procurement_lifecycle.services.state_machine import item_problems

from scripts.submit_all_drafts import collect_drafts


def draft_problems(draft: ProcurementDraft) -> list[str]:
    reasons = list(item_problems(draft.items))
    if draft.items and compute_amount(draft.items) <= 0:
        reasons.append("non_positive_total")
    if not (draft.title or "").strip():
        reasons.append("missing_title")
    return reasons


async def find_malformed(manager: ProcurementLifecycleManager, q: Optional[str] = None):
    malformed: list[tuple[ProcurementDraft, list[str]]] = []
    drafts = await collect_drafts(manager, q)
    for req in drafts:
        draft = await manager.get_draft(req.id)
        reasons = draft_problems(draft)
        if reasons:
            malformed.append((draft, reasons))
    return drafts, malformed


async def run(apply: bool, q: Optional[str], token: Optional[str]):
    setup_logging()
    async with ProcurementLifecycleManager.from_settings(token=token) as manager:
        drafts, malformed = await find_malformed(manager, q)

        print("Draft integrity report")
        print(f"  Apply mode: {apply}")
        print(f"  Drafts scanned: {len(drafts)}")
        print(f"  Malformed drafts: {len(malformed)}")

        if malformed:
            print("\nMalformed drafts")
            for draft, reasons in malformed:
                print(f"  - #{draft.id} {draft.title!r} reasons={reasons}")

        if apply:
            deleted = 0
            for draft, _ in malformed:
                try:
                    await manager.delete(draft.id)
                    deleted += 1
                except ProcurementError as exc:
                    print(f"  FAILED to delete #{draft.id}: {exc.message}")
            print(f"\nDeleted {deleted} malformed drafts.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Cleanup malformed draft procurement requests")
    parser.add_argument("--apply", action="store_true", help="Delete the malformed drafts")
    parser.add_argument("--q", default=None, help="Optional free-text filter")
    parser.add_argument("--token", default=None, help="Bearer token (defaults to API_TOKEN)")
    args = parser.parse_args()

    asyncio.run(run(apply=args.apply, q=args.q, token=args.token))
