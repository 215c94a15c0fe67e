"""Test fixtures for core infrastructure."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import get_settings
from app.features.documents import InMemoryDocumentStore, get_document_store
from app.features.reports.service import get_report_service
from app.main import app


@pytest.fixture(autouse=True)
def reset_caches():
    """Clear cached settings and the process-wide report service."""
    get_settings.cache_clear()
    get_report_service.cache_clear()
    yield
    get_settings.cache_clear()
    get_report_service.cache_clear()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    """Store holding a single product so readiness scans succeed."""
    return InMemoryDocumentStore({"products": [{"id": "p1", "name": "Beef Mince"}]})


@pytest.fixture
async def client(memory_store):
    """Create async HTTP client with the document store overridden."""
    app.dependency_overrides[get_document_store] = lambda: memory_store
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
