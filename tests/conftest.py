"""
Shared fixtures: in-memory database, test client and mocked upstream backends
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["TEMP_UPLOAD_DIR"] = tempfile.mkdtemp(prefix="kyc_uploads_")
os.environ["TASK_AUTO_REFRESH"] = "false"

import httpx
import pytest
from httpx import AsyncClient, ASGITransport

from kyc_onboarding.database import AsyncSessionLocal, Base, engine
from kyc_onboarding.main import app
from kyc_onboarding.models import application  # noqa: F401


# Minimal valid file headers
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
PDF_BYTES = b"%PDF-1.4\n" + b"0" * 64

SAMPLE_AADHAAR_TEXT = (
    "GOVERNMENT OF INDIA\n"
    "Ramesh Kumar\n"
    "DOB: 15/08/1990\n"
    "MALE\n"
    "2345 6789 0123\n"
)


@pytest.fixture(autouse=True)
async def reset_database():
    """Fresh tables for every test"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture
async def db_session():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client():
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac


class RecordingHandler:
    """MockTransport handler that answers from a route table and records requests"""

    def __init__(self, routes):
        # {(method, path): httpx.Response | callable(request) -> httpx.Response}
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, text="no such route")
        if callable(route):
            return route(request)
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def mock_backend():
    """Build a RecordingHandler from a route table"""
    return RecordingHandler
