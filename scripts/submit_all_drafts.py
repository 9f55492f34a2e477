#!/usr/bin/env python3
"""
Submit every DRAFT procurement request that passes the item checks.

Usage:
  python -m scripts.submit_all_drafts             # submit all drafts
  python -m scripts.submit_all_drafts --dry-run   # only report what would be submitted
  python -m scripts.submit_all_drafts --q laptop  # limit to drafts matching a search
"""

import argparse
import asyncio
from typing import Optional

from procurement_lifecycle.exceptions import ProcurementError
from procurement_lifecycle.logging_config import setup_logging
from procurement_lifecycle.schemas.procurement import ProcurementStatus
from procurement_lifecycle.services.lifecycle_manager import ProcurementLifecycleManager


async def collect_drafts(manager: ProcurementLifecycleManager, q: Optional[str], limit: int = 100):
    drafts = []
    page = 1
    while True:
        result = await manager.list_requests(status=ProcurementStatus.DRAFT, q=q, page=page, limit=limit)
        drafts.extend(result.data)
        if not result.pagination or not result.pagination.has_next or not result.data:
            return drafts
        page += 1


async def submit_drafts(manager: ProcurementLifecycleManager, q: Optional[str] = None, dry_run: bool = False):
    drafts = await collect_drafts(manager, q)
    print(f"Found {len(drafts)} DRAFT requests.")

    submitted, failed = [], []
    for req in drafts:
        if dry_run:
            print(f"  WOULD SUBMIT: #{req.id} {req.title}")
            continue
        try:
            await manager.submit(req.id)
        except ProcurementError as exc:
            print(f"  FAILED: #{req.id} {req.title} error: {exc.message}")
            failed.append(req.id)
        else:
            print(f"  SUCCESS: #{req.id} {req.title} submitted.")
            submitted.append(req.id)
    return submitted, failed


async def run(q: Optional[str], dry_run: bool, token: Optional[str]):
    setup_logging()
    async with ProcurementLifecycleManager.from_settings(token=token) as manager:
        _, failed = await submit_drafts(manager, q=q, dry_run=dry_run)
    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Submit all draft procurement requests")
    parser.add_argument("--q", default=None, help="Optional free-text filter")
    parser.add_argument("--dry-run", action="store_true", help="List drafts without submitting")
    parser.add_argument("--token", default=None, help="Bearer token (defaults to API_TOKEN)")
    args = parser.parse_args()

    raise SystemExit(asyncio.run(run(q=args.q, dry_run=args.dry_run, token=args.token)))
