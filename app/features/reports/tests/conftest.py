"""Test fixtures for the reports module."""

from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from app.core.config import ReportHeuristics, get_settings
from app.features.documents import InMemoryDocumentStore
from app.features.reports.context import ReportContext
from app.features.reports.schemas import (
    Customer,
    Order,
    OrderItem,
    Product,
    ReportFilters,
    ReportType,
)

TZ = ZoneInfo("Africa/Johannesburg")


def local_time(day: int, hour: int = 10, month: int = 5, year: int = 2024) -> datetime:
    """Local timestamp in the report time zone."""
    return datetime(year, month, day, hour, 0, tzinfo=TZ)


def build_order(
    order_id: str,
    created_at: datetime,
    items: list[tuple[str, float, int]],
    total: float | None = None,
    customer_id: str | None = "c1",
    **fields: Any,
) -> Order:
    """Build an order from (product_id, price, quantity) tuples.

    ``total`` defaults to the line-item sum.
    """
    line_items = [OrderItem(product_id=pid, price=price, quantity=qty) for pid, price, qty in items]
    return Order(
        id=order_id,
        created_at=created_at,
        customer_id=customer_id,
        items=line_items,
        total=total if total is not None else sum(i.line_total for i in line_items),
        **fields,
    )


def build_context(
    orders: list[Order],
    products: list[Product],
    customers: list[Customer],
    report_type: ReportType = ReportType.SALES,
    start: date = date(2024, 5, 1),
    end: date = date(2024, 5, 31),
    now: datetime | None = None,
    filtered_orders: list[Order] | None = None,
) -> ReportContext:
    """Build a report context over the given records."""
    return ReportContext(
        report_type=report_type,
        start=datetime.combine(start, time.min, tzinfo=TZ),
        end=datetime.combine(end, time.max, tzinfo=TZ),
        orders=tuple(orders),
        filtered_orders=tuple(filtered_orders if filtered_orders is not None else orders),
        products=tuple(products),
        customers=tuple(customers),
        filters=ReportFilters(),
        generation=1,
        now=now or local_time(31, 12),
        tz=TZ,
        heuristics=ReportHeuristics(),
    )


@pytest.fixture
def at():
    """Factory for local timestamps: ``at(day, hour, month=5, year=2024)``."""
    return local_time


@pytest.fixture
def make_order():
    """Factory for orders built from (product_id, price, quantity) tuples."""
    return build_order


@pytest.fixture
def make_context():
    """Factory for report contexts over arbitrary records."""
    return build_context


@pytest.fixture
def heuristics() -> ReportHeuristics:
    """Default heuristic ratios and thresholds."""
    return ReportHeuristics()


@pytest.fixture
def products() -> list[Product]:
    """Small farm-goods catalog."""
    return [
        Product(id="p1", name="Beef Mince", category="beef", price=100, stock=20, cost=60),
        Product(id="p2", name="Whole Chicken", category="poultry", price=80, stock=10, cost=50),
        Product(id="p3", name="Free Range Eggs", category="poultry", price=40, stock=0),
        Product(id="p4", name="Lamb Chops", category="lamb", price=150, stock=5, status="inactive"),
    ]


@pytest.fixture
def customers() -> list[Customer]:
    """Registered customers, one without orders and one without a signup date."""
    return [
        Customer(
            id="c1",
            name="Thandi Nkosi",
            email="thandi@example.com",
            created_at=local_time(2, 9, month=4),
        ),
        Customer(id="c2", email="sipho.dlamini@example.com", created_at=local_time(10, 9)),
        Customer(
            id="c3",
            first_name="Anna",
            last_name="Botha",
            email="anna@example.com",
            created_at=local_time(20, 9),
        ),
        Customer(id="c4", display_name="No Signup"),
    ]


@pytest.fixture
def orders() -> list[Order]:
    """Orders across three days, three payment methods and an unknown product."""
    return [
        build_order(
            "o1",
            local_time(1, 9),
            [("p1", 100, 1)],
            customer_id="c1",
            payment_method="card",
            payment_status="paid",
            order_status="delivered",
        ),
        build_order(
            "o2",
            local_time(1, 14),
            [("p1", 50, 1)],
            customer_id="c2",
            order_status="confirmed",
        ),
        build_order(
            "o3",
            local_time(2, 19),
            [("p2", 80, 12)],
            customer_id="c1",
            payment_method="eft",
            payment_status="failed",
            order_status="cancelled",
        ),
        build_order(
            "o4",
            local_time(3, 2),
            [("p3", 40, 5), ("gone", 10, 5)],
            customer_id="c3",
            payment_method="card",
            payment_status="pending",
            order_status="processing",
        ),
    ]


@pytest.fixture
def context(
    orders: list[Order], products: list[Product], customers: list[Customer]
) -> ReportContext:
    """Report context over the sample records."""
    return build_context(orders, products, customers)


@pytest.fixture
def raw_documents() -> dict[str, list[dict[str, Any]]]:
    """Store documents as the storefront writes them (camelCase, legacy fields)."""
    return {
        "orders": [
            {
                "id": "o1",
                "createdAt": "2024-05-01T07:00:00Z",
                "userId": "c1",
                "userName": "Thandi",
                "items": [{"id": "p1", "name": "Beef Mince", "price": 100, "quantity": 2}],
                "total": 200,
                "paymentMethod": "card",
                "paymentStatus": "paid",
                "status": "delivered",
            },
            {
                "id": "o2",
                "createdAt": {"seconds": 1714730400, "nanoseconds": 0},
                "customerId": "c2",
                "items": [{"id": "p2", "price": 80, "quantity": 12}],
                "total": None,
                "orderStatus": "confirmed",
            },
        ],
        "products": [
            {"id": "p1", "name": "Beef Mince", "category": "beef", "price": 100, "stock": 20},
            {"id": "p2", "name": "Whole Chicken", "category": "poultry", "price": 80, "stock": 10},
        ],
        "users": [
            {
                "id": "c1",
                "name": "Thandi Nkosi",
                "email": "thandi@example.com",
                "createdAt": "2024-04-02T08:00:00Z",
            },
            {"id": "c2", "email": "sipho@example.com"},
        ],
    }


@pytest.fixture
def memory_store(raw_documents: dict[str, list[dict[str, Any]]]) -> InMemoryDocumentStore:
    """In-memory store seeded with the raw documents."""
    return InMemoryDocumentStore(raw_documents)


@pytest.fixture(autouse=True)
def reset_settings():
    """Clear cached settings so environment overrides apply per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
