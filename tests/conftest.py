import httpx
import pytest
import pytest_asyncio

from procurement_lifecycle.services.budget_api import BudgetAllocationClient
from procurement_lifecycle.services.lifecycle_manager import ProcurementLifecycleManager
from procurement_lifecycle.services.procurement_api import ProcurementApiClient, build_http_client

from fake_portal import FakePortal

PORTAL_BASE_URL = "http://portal.test/api"
PROOF_EXTENSIONS = [".pdf", ".jpg", ".jpeg", ".png"]


@pytest.fixture
def portal():
    portal = FakePortal()
    portal.add_allocation(1, allocated="10000.00", used="0")
    return portal


@pytest_asyncio.fixture
async def http(portal):
    client = build_http_client(
        base_url=PORTAL_BASE_URL,
        token="test-token",
        transport=httpx.ASGITransport(app=portal.app),
    )
    yield client
    await client.aclose()


@pytest.fixture
def manager(http):
    return ProcurementLifecycleManager(
        ProcurementApiClient(http),
        BudgetAllocationClient(http),
        proof_extensions=PROOF_EXTENSIONS,
    )


@pytest.fixture
def sample_items():
    return [
        {"name": "Bond paper", "unit": "ream", "quantity": 2, "unitCost": 100},
        {"name": "Ballpen", "unit": "box", "quantity": 1, "unitCost": 50},
    ]
