"""Data fetchers for report generation.

Fetch faults never abort a report: the failed collection is replaced by an
empty list, and the failure is surfaced as a notice plus a ``fetch_errors``
entry so callers can tell an empty result from a failed one.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ValidationError

from app.core.config import get_settings
from app.core.logging import get_logger
from app.features.documents import ORDERS, PRODUCTS, USERS, DocumentStore
from app.features.documents.store import CREATED_AT_FIELD, coerce_datetime
from app.features.reports.filters import category_key
from app.features.reports.schemas import Customer, Order, Product

logger = get_logger(__name__)

FETCH_FAILURE_NOTICES = {
    ORDERS: "Failed to fetch orders data",
    PRODUCTS: "Failed to fetch products data",
    USERS: "Failed to fetch customers data",
}


@dataclass
class FetchResult[T]:
    """Records of one collection, or the reason they are missing."""

    collection: str
    records: list[T] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class FetchedSnapshot:
    """Orders, products and customers fetched for one report generation."""

    orders: list[Order] = field(default_factory=list)
    products: list[Product] = field(default_factory=list)
    customers: list[Customer] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)
    fetch_errors: list[str] = field(default_factory=list)


def _normalize_order(
    doc: dict[str, Any], fetched_at: datetime, naive_tz: tzinfo
) -> dict[str, Any]:
    """Coerce store timestamps; orders without ``createdAt`` get the fetch time."""
    doc["createdAt"] = coerce_datetime(doc.get(CREATED_AT_FIELD), naive_tz) or fetched_at
    history = doc.get("statusHistory")
    if isinstance(history, list):
        doc["statusHistory"] = [
            {
                **entry,
                "changedAt": coerce_datetime(
                    entry.get("changedAt", entry.get("timestamp")), naive_tz
                ),
            }
            for entry in history
            if isinstance(entry, dict)
        ]
    return doc


def _normalize_customer(doc: dict[str, Any], naive_tz: tzinfo) -> dict[str, Any]:
    """Coerce store timestamps; a missing signup date stays ``None``."""
    doc["createdAt"] = coerce_datetime(doc.get(CREATED_AT_FIELD), naive_tz)
    doc["lastLogin"] = coerce_datetime(doc.get("lastLogin"), naive_tz)
    return doc


def _validate_all[M: BaseModel](
    model: type[M], collection: str, docs: Iterable[dict[str, Any]]
) -> list[M]:
    """Validate documents, skipping the ones that cannot be read."""
    records: list[M] = []
    for doc in docs:
        try:
            records.append(model.model_validate(doc))
        except ValidationError as e:
            logger.warning(
                "reports.document_skipped",
                collection=collection,
                doc_id=doc.get("id"),
                error_count=e.error_count(),
            )
    return records


class ReportDataFetcher:
    """Reads report inputs from a document store.

    Each ``fetch_*`` method returns a ``FetchResult`` and never raises.
    Naive timestamps are read in the report time zone.
    """

    def __init__(self, store: DocumentStore, naive_tz: tzinfo | None = None) -> None:
        """Initialize the fetcher.

        Args:
            store: Document store to read from.
            naive_tz: Zone for naive timestamps. Defaults to the configured
                report time zone.
        """
        self.store = store
        self.naive_tz = naive_tz or ZoneInfo(get_settings().report_timezone)

    async def _guarded[T](
        self, collection: str, load: Callable[[], Awaitable[list[T]]]
    ) -> FetchResult[T]:
        try:
            records = await load()
        except Exception as e:
            logger.error(
                "reports.fetch_failed",
                collection=collection,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return FetchResult(collection=collection, error=FETCH_FAILURE_NOTICES[collection])
        logger.debug("reports.fetched", collection=collection, count=len(records))
        return FetchResult(collection=collection, records=records)

    async def fetch_orders(self, start: datetime, end: datetime) -> FetchResult[Order]:
        """Orders created in ``[start, end]`` (inclusive), newest first."""

        async def load() -> list[Order]:
            docs = await self.store.query_range(
                ORDERS, CREATED_AT_FIELD, start, end, descending=True
            )
            fetched_at = datetime.now(UTC)
            normalized = (_normalize_order(d, fetched_at, self.naive_tz) for d in docs)
            return _validate_all(Order, ORDERS, normalized)

        return await self._guarded(ORDERS, load)

    async def fetch_products(self) -> FetchResult[Product]:
        """The full product catalog."""

        async def load() -> list[Product]:
            return _validate_all(Product, PRODUCTS, await self.store.scan(PRODUCTS))

        return await self._guarded(PRODUCTS, load)

    async def fetch_customers(self) -> FetchResult[Customer]:
        """Every registered customer."""

        async def load() -> list[Customer]:
            docs = await self.store.scan(USERS)
            normalized = (_normalize_customer(d, self.naive_tz) for d in docs)
            return _validate_all(Customer, USERS, normalized)

        return await self._guarded(USERS, load)

    async def fetch_snapshot(self, start: datetime, end: datetime) -> FetchedSnapshot:
        """Fetch orders, products and customers concurrently and join the results."""
        orders, products, customers = await asyncio.gather(
            self.fetch_orders(start, end),
            self.fetch_products(),
            self.fetch_customers(),
        )

        snapshot = FetchedSnapshot(
            orders=orders.records,
            products=products.records,
            customers=customers.records,
        )
        for result in (orders, products, customers):
            if result.failed and result.error:
                snapshot.notices.append(result.error)
                snapshot.fetch_errors.append(result.collection)
        return snapshot


def list_categories(products: Iterable[Product]) -> list[str]:
    """Distinct non-empty product categories in first-seen order.

    Spellings differing only in case or surrounding whitespace are one category.
    """
    seen: dict[str, str] = {}
    for product in products:
        if category_key(product.category):
            seen.setdefault(category_key(product.category), product.category.strip())
    return list(seen.values())
