"""Document table backing the storefront collections.

The storefront writes schemaless documents (orders, products, users) into
named collections. Each document is stored as one row:

- ``collection`` + ``doc_id`` uniquely identify a document.
- ``created_at`` mirrors the document's ``createdAt`` field so range queries
  can use an index instead of scanning JSON.
- ``data`` holds the raw document body.
"""

import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class StoredDocument(Base):
    """One document of a storefront collection.

    Attributes:
        id: Surrogate primary key.
        collection: Collection name (orders, products, users).
        doc_id: Document identifier, unique within its collection.
        created_at: Document creation timestamp (NULL when the document has none).
        data: Raw document body.
        stored_at: When the row was written.
    """

    __tablename__ = "document"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    collection: Mapped[str] = mapped_column(String(50), index=True)
    doc_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSON().with_variant(JSONB(), "postgresql"))
    stored_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_document_collection_doc_id"),
        Index("ix_document_collection_created_at", "collection", "created_at"),
    )
