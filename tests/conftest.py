# tests/conftest.py
import pytest
import httpx
from fastapi.testclient import TestClient

from sitewatch.config import Settings
from sitewatch.services.health_checker import EndpointHealthChecker
from sitewatch.services.status_store import StatusStore

from tests.factories import FakeInventory, make_pool, make_site


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return StatusStore()


@pytest.fixture
def inventory():
    return FakeInventory(
        sites=[
            make_site("Default Web Site", apps=["/api", "/admin"]),
            make_site("Intranet", state="Stopped", pool="IntranetPool", site_id=2),
        ],
        pools=[
            make_pool("DefaultAppPool", workers=2),
            make_pool("IntranetPool", state="Stopped", pipeline="Classic"),
        ],
    )


@pytest.fixture
def mock_checker():
    """Checker whose HTTP traffic goes to an in-process handler returning 200."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="ok")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EndpointHealthChecker(client=client)


@pytest.fixture
def app(inventory, mock_checker):
    from sitewatch.main import create_app

    return create_app(
        settings=Settings(polling_enabled=False),
        inventory=inventory,
        checker=mock_checker,
    )


@pytest.fixture
def client(app):
    """FastAPI test client with the lifespan running (polling disabled)."""
    with TestClient(app) as test_client:
        yield test_client
