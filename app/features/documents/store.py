"""Document store adapters.

The reporting feature consumes a generic document-store query interface with
exactly two operations:

- ``query_range``: documents whose timestamp field lies in ``[start, end]``
  (inclusive), ordered by that field.
- ``scan``: every document of a collection.

Two adapters implement it: ``SqlDocumentStore`` (rows of the ``document``
table) and ``InMemoryDocumentStore`` (local development and tests).
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from datetime import UTC, date, datetime, tzinfo
from functools import lru_cache
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.core.database import get_session_maker
from app.core.exceptions import BadRequestError, DocumentStoreError
from app.core.logging import get_logger
from app.features.documents.models import StoredDocument

logger = get_logger(__name__)

# Collection names used by the storefront
ORDERS = "orders"
PRODUCTS = "products"
USERS = "users"

# The only timestamp field range queries are indexed on
CREATED_AT_FIELD = "createdAt"


def coerce_datetime(value: Any, naive_tz: tzinfo | None = None) -> datetime | None:
    """Convert a stored timestamp into a ``datetime``.

    Accepts ``datetime``, ``date``, ISO-8601 strings (a trailing ``Z`` is
    read as UTC), epoch seconds and exported store timestamps of the form
    ``{"seconds": ..., "nanoseconds": ...}``.

    Args:
        value: Raw timestamp value.
        naive_tz: Zone attached to naive results (the report time zone).
            Naive results stay naive when omitted.

    Returns:
        Parsed datetime, or None when the value is missing or unreadable.
    """
    parsed = _parse_timestamp(value)
    if parsed is not None and parsed.tzinfo is None and naive_tz is not None:
        return parsed.replace(tzinfo=naive_tz)
    return parsed


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        return datetime.fromtimestamp(seconds + nanos / 1e9, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _comparable(value: datetime, naive_tz: tzinfo) -> datetime:
    """Make naive and aware datetimes comparable (naive is read as ``naive_tz``)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=naive_tz)
    return value


class DocumentStore(Protocol):
    """Read-only query interface over storefront collections."""

    async def query_range(
        self,
        collection: str,
        field: str,
        start: datetime,
        end: datetime,
        *,
        descending: bool = True,
    ) -> list[dict[str, Any]]:
        """Return documents whose ``field`` lies in ``[start, end]``."""
        ...

    async def scan(self, collection: str) -> list[dict[str, Any]]:
        """Return every document in ``collection``."""
        ...

    async def ping(self) -> None:
        """Check that the backend answers, without reading any collection."""
        ...


class InMemoryDocumentStore:
    """Dict-backed document store.

    Documents are deep-copied on read so callers always work on a snapshot.
    Naive timestamps are read in the report time zone, as the report
    calculations read them.
    """

    def __init__(
        self,
        collections: dict[str, Iterable[dict[str, Any]]] | None = None,
        naive_tz: tzinfo | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            collections: Initial documents keyed by collection name. Every
                document needs an ``id`` key.
            naive_tz: Zone for naive timestamps. Defaults to the configured
                report time zone.
        """
        self.naive_tz = naive_tz or ZoneInfo(get_settings().report_timezone)
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        for name, docs in (collections or {}).items():
            for doc in docs:
                self.put(name, doc)

    def put(self, collection: str, document: dict[str, Any]) -> None:
        """Insert or replace a document.

        Raises:
            BadRequestError: If the document has no ``id``.
        """
        doc_id = document.get("id")
        if not doc_id:
            raise BadRequestError("Document is missing an 'id'", details={"collection": collection})
        self._collections.setdefault(collection, {})[str(doc_id)] = copy.deepcopy(document)

    def clear(self) -> None:
        """Drop every collection."""
        self._collections.clear()

    async def query_range(
        self,
        collection: str,
        field: str,
        start: datetime,
        end: datetime,
        *,
        descending: bool = True,
    ) -> list[dict[str, Any]]:
        lower = _comparable(start, self.naive_tz)
        upper = _comparable(end, self.naive_tz)
        matched: list[tuple[datetime, dict[str, Any]]] = []
        for doc in self._collections.get(collection, {}).values():
            stamp = coerce_datetime(doc.get(field))
            if stamp is None:
                continue
            stamp = _comparable(stamp, self.naive_tz)
            if lower <= stamp <= upper:
                matched.append((stamp, doc))
        matched.sort(key=lambda pair: pair[0], reverse=descending)
        return [copy.deepcopy(doc) for _, doc in matched]

    async def scan(self, collection: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(doc) for doc in self._collections.get(collection, {}).values()]

    async def ping(self) -> None:
        return None


class SqlDocumentStore:
    """Document store over the ``document`` table.

    Each query runs in its own short-lived session so that concurrent reads
    (orders, products and customers fetched together) never share one.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store.

        Args:
            session_maker: Factory for async database sessions.
        """
        self.session_maker = session_maker

    @staticmethod
    def _to_document(row: StoredDocument) -> dict[str, Any]:
        doc = dict(row.data or {})
        doc["id"] = row.doc_id
        if row.created_at is not None:
            doc[CREATED_AT_FIELD] = row.created_at
        return doc

    async def query_range(
        self,
        collection: str,
        field: str,
        start: datetime,
        end: datetime,
        *,
        descending: bool = True,
    ) -> list[dict[str, Any]]:
        if field != CREATED_AT_FIELD:
            raise BadRequestError(
                f"Range queries are only supported on '{CREATED_AT_FIELD}'",
                details={"field": field},
            )

        order = StoredDocument.created_at.desc() if descending else StoredDocument.created_at
        stmt = (
            select(StoredDocument)
            .where(StoredDocument.collection == collection)
            .where(StoredDocument.created_at >= start)
            .where(StoredDocument.created_at <= end)
            .order_by(order)
        )
        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise DocumentStoreError(
                f"Range query on '{collection}' failed",
                details={"collection": collection, "error": str(e)},
            ) from e
        logger.debug("documents.range_queried", collection=collection, count=len(rows))
        return [self._to_document(row) for row in rows]

    async def scan(self, collection: str) -> list[dict[str, Any]]:
        stmt = select(StoredDocument).where(StoredDocument.collection == collection)
        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise DocumentStoreError(
                f"Scan of '{collection}' failed",
                details={"collection": collection, "error": str(e)},
            ) from e
        logger.debug("documents.scanned", collection=collection, count=len(rows))
        return [self._to_document(row) for row in rows]

    async def ping(self) -> None:
        try:
            async with self.session_maker() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise DocumentStoreError(
                "Document store is unreachable", details={"error": str(e)}
            ) from e


@lru_cache
def get_memory_store() -> InMemoryDocumentStore:
    """Process-wide in-memory store used when ``document_store_backend='memory'``."""
    return InMemoryDocumentStore()


def get_document_store() -> DocumentStore:
    """Resolve the configured document store.

    Returns:
        In-memory store when ``document_store_backend="memory"``, otherwise
        a SQL store over the configured database.
    """
    settings = get_settings()
    if settings.document_store_backend == "memory":
        return get_memory_store()
    return SqlDocumentStore(get_session_maker())
