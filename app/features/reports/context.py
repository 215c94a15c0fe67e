"""Report context and generation tokens.

A ``ReportContext`` is the immutable snapshot one report generation worked
on. Drilldowns, business metrics and exports receive it explicitly instead of
reading module-level state.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.core.config import ReportHeuristics
from app.features.reports.schemas import (
    Customer,
    Order,
    Product,
    ReportFilters,
    ReportResponse,
    ReportType,
)


@dataclass(frozen=True)
class ReportContext:
    """Snapshot of one report generation.

    Attributes:
        report_type: Report family that was generated.
        start: Inclusive range start (local midnight).
        end: Inclusive range end (local end of day).
        orders: Every order fetched for the range, before filtering.
        filtered_orders: Orders left after the report filters.
        products: Full product catalog.
        customers: Full customer list.
        filters: Filter selections used.
        generation: Generation token that produced the snapshot.
        now: Reference time for recency calculations.
        tz: Report time zone.
        heuristics: Heuristic ratios and thresholds.
        currency_symbol: Currency symbol for display text.
        top_products_limit: Size of top-product lists.
    """

    report_type: ReportType
    start: datetime
    end: datetime
    orders: tuple[Order, ...]
    filtered_orders: tuple[Order, ...]
    products: tuple[Product, ...]
    customers: tuple[Customer, ...]
    filters: ReportFilters
    generation: int
    now: datetime
    tz: ZoneInfo
    heuristics: ReportHeuristics = field(default_factory=ReportHeuristics)
    currency_symbol: str = "R"
    top_products_limit: int = 10

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    @property
    def days_in_range(self) -> int:
        """Number of calendar days covered by the range (at least 1)."""
        return max((self.end_date - self.start_date).days + 1, 1)

    def customer(self, customer_id: str | None) -> Customer | None:
        """Look up a customer by id."""
        if not customer_id:
            return None
        return next((c for c in self.customers if c.id == customer_id), None)

    def product(self, product_id: str) -> Product | None:
        """Look up a product by id."""
        return next((p for p in self.products if p.id == product_id), None)


class GenerationCounter:
    """Monotonically increasing report generation tokens.

    Each generation request takes a token before fetching. When it finishes,
    its result is only kept if no newer token was issued in the meantime.
    """

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        """Issue the next token."""
        self._latest += 1
        return self._latest

    def is_latest(self, token: int) -> bool:
        """Whether ``token`` is the most recently issued one."""
        return token == self._latest


class ReportCache:
    """Holds the context and response of the latest generation."""

    def __init__(self) -> None:
        self.context: ReportContext | None = None
        self.response: ReportResponse | None = None

    def store(self, context: ReportContext, response: ReportResponse) -> None:
        """Replace the cached snapshot."""
        self.context = context
        self.response = response
