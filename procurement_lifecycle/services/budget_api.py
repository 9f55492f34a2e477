"""Read-only access to budget allocations (the funding source of a request)."""

from decimal import Decimal
from typing import Any, Optional

import structlog

from procurement_lifecycle.config import settings
from procurement_lifecycle.schemas.budget import BudgetAllocation
from procurement_lifecycle.schemas.common import Page
from procurement_lifecycle.services.procurement_api import PortalHttpClient

logger = structlog.get_logger()

BASE_PATH = "/budget-allocations"


class BudgetAllocationClient(PortalHttpClient):
    async def list_allocations(
        self,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        **filters: Any,
    ) -> Page[BudgetAllocation]:
        """
        GET /budget-allocations.

        Extra keyword filters (budgetId, programId, classificationId,
        objectOfExpenditureId, sortBy, sortOrder) are passed through when set.
        """
        params: dict[str, Any] = {"page": page, "limit": limit or settings.PAGE_LIMIT}
        if search:
            params["search"] = search
        params.update({k: v for k, v in filters.items() if v not in (None, "")})

        envelope = await self._request("GET", BASE_PATH, params=params)
        return self._parse(
            Page[BudgetAllocation],
            {"data": envelope.data or [], "pagination": envelope.pagination},
            BASE_PATH,
        )

    async def all_allocations(self, limit: int = 100) -> list[BudgetAllocation]:
        """Every allocation, following pagination until the last page."""
        allocations: list[BudgetAllocation] = []
        page = 1
        while True:
            result = await self.list_allocations(page=page, limit=limit)
            allocations.extend(result.data)
            if not result.pagination or not result.pagination.has_next or not result.data:
                return allocations
            page += 1

    async def find(self, allocation_id: int) -> Optional[BudgetAllocation]:
        for allocation in await self.all_allocations():
            if allocation.id == allocation_id:
                return allocation
        return None


def warn_if_over_balance(allocation: Optional[BudgetAllocation], amount: Decimal) -> bool:
    """
    Log a warning when `amount` exceeds the allocation's remaining balance.
    Informational only: the server decides whether funds suffice.
    """
    if allocation is None or allocation.covers(amount):
        return False
    logger.warning(
        "allocation_balance_low",
        allocation_id=allocation.id,
        remaining=str(allocation.remaining),
        requested=str(amount),
    )
    return True
