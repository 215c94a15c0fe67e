"""Read-only access to the storefront's document collections."""

from app.features.documents.store import (
    ORDERS,
    PRODUCTS,
    USERS,
    DocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
    get_document_store,
)

__all__ = [
    "ORDERS",
    "PRODUCTS",
    "USERS",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "get_document_store",
]
