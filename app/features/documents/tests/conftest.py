"""Test fixtures for the documents module."""

import pytest

from app.core.config import get_settings
from app.features.documents import InMemoryDocumentStore
from app.features.documents.store import get_memory_store


@pytest.fixture(autouse=True)
def reset_caches():
    """Clear cached settings and the process-wide memory store."""
    get_settings.cache_clear()
    get_memory_store.cache_clear()
    yield
    get_settings.cache_clear()
    get_memory_store.cache_clear()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Store with orders spread over May 2024 and one undated user."""
    return InMemoryDocumentStore(
        {
            "orders": [
                {"id": "o1", "createdAt": "2024-05-01T00:00:00Z", "total": 10},
                {"id": "o2", "createdAt": "2024-05-15T12:00:00+02:00", "total": 20},
                {"id": "o3", "createdAt": {"seconds": 1717199999}, "total": 30},
                {"id": "o4", "total": 40},
            ],
            "users": [{"id": "c1", "displayName": "Thandi"}],
        }
    )
