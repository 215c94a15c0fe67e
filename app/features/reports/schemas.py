"""Pydantic schemas for storefront records and report outputs.

Records (Order, Product, Customer) are validated from raw store documents,
which use camelCase keys. Canonical field choices:

- ``Order.customer_id`` reads ``customerId`` and falls back to the legacy
  ``userId`` when ``customerId`` is absent.
- ``Order.order_status`` reads ``orderStatus`` and falls back to the legacy
  ``status`` when ``orderStatus`` is absent.

Missing numeric fields default to 0, missing lists to empty.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# =============================================================================
# Enums
# =============================================================================


class ReportType(str, Enum):
    """Report families, each with its own filters and sections."""

    SALES = "sales"
    PAYMENT = "payment"
    PRODUCT = "product"
    CUSTOMER = "customer"


class CustomerType(str, Enum):
    """Order size class. Bulk means more than the bulk threshold of units."""

    BULK = "bulk"
    REGULAR = "regular"


class PaymentStatusFilter(str, Enum):
    """Values the payment report can filter ``paymentStatus`` on."""

    PAID = "paid"
    PENDING = "pending"
    FAILED = "failed"


class PaymentOutcome(str, Enum):
    """Result of classifying an order's status fields."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class CustomerStatus(str, Enum):
    """Recency label derived from days since the last purchase."""

    ACTIVE = "Active"
    AT_RISK = "At Risk"
    INACTIVE = "Inactive"


class ValueSegment(str, Enum):
    """Customer value segment by total spend."""

    HIGH = "High Value"
    MEDIUM = "Medium Value"
    LOW = "Low Value"
    NEW_INACTIVE = "New/Inactive"


class CLVTier(str, Enum):
    """Tier of a projected customer lifetime value."""

    PREMIUM = "Premium"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TimeSlot(str, Enum):
    """Local time-of-day buckets."""

    MORNING = "Morning (6am-12pm)"
    AFTERNOON = "Afternoon (12pm-6pm)"
    EVENING = "Evening (6pm-12am)"
    NIGHT = "Night (12am-6am)"


# =============================================================================
# Store Records
# =============================================================================


class RecordModel(BaseModel):
    """Base for records read from the document store."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class OrderItem(RecordModel):
    """A line item. ``product_id`` joins against ``Product.id`` best-effort."""

    product_id: str = Field("", validation_alias=AliasChoices("id", "productId", "product_id"))
    name: str = ""
    price: float = 0.0
    quantity: int = 0

    @field_validator("price", "quantity", mode="before")
    @classmethod
    def none_to_zero(cls, v: Any) -> Any:
        """Treat null numbers as 0."""
        return 0 if v is None else v

    @field_validator("product_id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> str:
        """Document ids are compared as strings."""
        return "" if v is None else str(v)

    @property
    def line_total(self) -> float:
        """Price times quantity."""
        return self.price * self.quantity


class StatusChange(RecordModel):
    """One entry of an order's status history."""

    status: str = ""
    changed_at: datetime | None = Field(
        None, validation_alias=AliasChoices("changedAt", "timestamp", "changed_at")
    )
    changed_by: str | None = Field(
        None, validation_alias=AliasChoices("changedBy", "actor", "changed_by")
    )
    note: str | None = None


class Order(RecordModel):
    """A storefront order snapshot."""

    id: str
    created_at: datetime
    customer_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    items: list[OrderItem] = Field(default_factory=list)
    total: float = 0.0
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    payment_method: str | None = None
    payment_status: str | None = None
    order_status: str | None = None
    status_history: list[StatusChange] = Field(default_factory=list)
    is_pickup: bool = False
    address: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def apply_legacy_fields(cls, data: Any) -> Any:
        """Map legacy field names onto the canonical ones."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not (data.get("customerId") or data.get("customer_id")) and data.get("userId"):
            data["customerId"] = data["userId"]
        if not (data.get("orderStatus") or data.get("order_status")) and data.get("status"):
            data["orderStatus"] = data["status"]
        if data.get("userName") and not data.get("customerName"):
            data["customerName"] = data["userName"]
        if data.get("userEmail") and not data.get("customerEmail"):
            data["customerEmail"] = data["userEmail"]
        if data.get("items") is None:
            data.pop("items", None)
        if data.get("statusHistory") is None:
            data.pop("statusHistory", None)
        return data

    @field_validator("total", "subtotal", "delivery_fee", mode="before")
    @classmethod
    def none_to_zero(cls, v: Any) -> Any:
        """Treat null amounts as 0."""
        return 0 if v is None else v

    @field_validator("is_pickup", mode="before")
    @classmethod
    def none_to_false(cls, v: Any) -> Any:
        """Treat a null pickup flag as delivery."""
        return False if v is None else v

    @property
    def total_quantity(self) -> int:
        """Sum of line-item quantities."""
        return sum(item.quantity for item in self.items)

    @property
    def method(self) -> str:
        """Payment method, lower-cased, defaulting to cash."""
        return (self.payment_method or "cash").lower()


class Product(RecordModel):
    """A catalog product."""

    id: str
    name: str = "Unknown"
    category: str = ""
    price: float = 0.0
    stock: int = 0
    status: str = "active"
    cost: float | None = None

    @field_validator("price", "stock", mode="before")
    @classmethod
    def none_to_zero(cls, v: Any) -> Any:
        """Treat null numbers as 0."""
        return 0 if v is None else v

    @field_validator("name", "category", "status", mode="before")
    @classmethod
    def none_to_default(cls, v: Any, info: Any) -> Any:
        """Treat null text fields as their defaults."""
        if v is None:
            return {"name": "Unknown", "category": "", "status": "active"}[info.field_name]
        return v


class Customer(RecordModel):
    """A registered customer (storefront user)."""

    id: str
    name: str | None = None
    display_name: str | None = None
    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None


# =============================================================================
# Request Parameters
# =============================================================================


class ReportFilters(BaseModel):
    """Type-specific filter selections. ``None`` (or "all") means no filter."""

    category: str | None = Field(None, description="Product category to restrict to.")
    customer_type: CustomerType | None = Field(None, description="Bulk or regular orders only.")
    payment_status: PaymentStatusFilter | None = Field(
        None, description="Payment status to restrict to."
    )

    @field_validator("category", "customer_type", "payment_status", mode="before")
    @classmethod
    def all_means_none(cls, v: Any) -> Any:
        """'all' and blank selections are no-op filters."""
        if v is None:
            return None
        if isinstance(v, str) and v.strip().lower() in ("", "all"):
            return None
        return v


# =============================================================================
# Calculation Outputs
# =============================================================================


class SummaryCards(BaseModel):
    """Headline scalars shown above every report."""

    total_orders: int = Field(..., ge=0)
    total_revenue: float
    total_products_sold: int = Field(..., ge=0)
    total_customers: int = Field(..., ge=0)


class SalesTrendPoint(BaseModel):
    """One local calendar day of sales."""

    date: date
    total: float
    count: int
    customer_count: int = 0
    order_ids: list[str] = Field(default_factory=list)


class CategorySales(BaseModel):
    """Revenue attributed to one product category."""

    category: str = Field(..., description="Display label (capitalised).")
    raw_category: str = Field(..., description="Category as stored on the product.")
    total: float
    order_count: int = 0
    product_count: int = 0
    customer_count: int = 0
    order_ids: list[str] = Field(default_factory=list)


class CustomerTypeBucket(BaseModel):
    """Orders of one size class."""

    customer_type: CustomerType
    count: int = 0
    total: float = 0.0
    customer_ids: list[str] = Field(default_factory=list)


class CustomerTypeBreakdown(BaseModel):
    """Bulk versus regular orders."""

    bulk: CustomerTypeBucket
    regular: CustomerTypeBucket


class TopProduct(BaseModel):
    """A best seller with its share of the top-N revenue."""

    product_id: str
    name: str
    category: str
    quantity: int
    revenue: float
    percentage: float = Field(..., description="Share of revenue among the returned top-N.")
    customer_count: int = 0


class PaymentMethodStats(BaseModel):
    """Orders paid with one method."""

    method: str
    count: int = 0
    success: int = 0
    total: float = 0.0
    customer_ids: list[str] = Field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Successful orders as a percentage of all orders for the method."""
        return self.success / self.count * 100 if self.count else 0.0


class PaymentSuccessOverview(BaseModel):
    """Orders split by classified payment outcome."""

    success: int = 0
    failed: int = 0
    pending: int = 0
    success_order_ids: list[str] = Field(default_factory=list)
    failed_order_ids: list[str] = Field(default_factory=list)
    pending_order_ids: list[str] = Field(default_factory=list)


class TimeSlotBucket(BaseModel):
    """Orders placed in one time-of-day slot."""

    slot: TimeSlot
    count: int = 0
    total: float = 0.0
    customer_ids: list[str] = Field(default_factory=list)


class ProductPerformance(BaseModel):
    """Catalog product with sales and heuristic engagement estimates.

    ``estimated_views``, ``conversion_rate``, ``estimated_profit`` and
    ``profit_margin`` come from configured placeholder ratios, not measured
    traffic or cost data.
    """

    product_id: str
    name: str
    category: str
    sold: int = 0
    revenue: float = 0.0
    stock: int = 0
    price: float = 0.0
    status: str = "active"
    estimated_views: float
    conversion_rate: float
    estimated_profit: float
    profit_margin: float
    customer_count: int = 0
    estimated: bool = True


class CustomerSpend(BaseModel):
    """Order count and spend of one catalog customer."""

    customer_id: str
    order_count: int = 0
    total_spent: float = 0.0


class CustomerLifetime(BaseModel):
    """Lifetime purchase history of a customer who ordered in the range."""

    customer_id: str
    name: str
    email: str
    order_count: int
    total_spent: float
    avg_order_value: float
    first_purchase: datetime | None = None
    last_purchase: datetime | None = None
    signup_date: datetime | None = None
    days_since_last_purchase: int | None = None
    status: CustomerStatus


class CustomerSegment(BaseModel):
    """Customers in one value segment."""

    segment: ValueSegment
    count: int = 0
    definition: str
    spending_range: str
    customer_ids: list[str] = Field(default_factory=list)


class AcquisitionMonth(BaseModel):
    """Customers who signed up in one month."""

    month: str = Field(..., description="Signup month as YYYY-MM.")
    count: int = 0
    customer_ids: list[str] = Field(default_factory=list)


class CategorySpending(BaseModel):
    """Customer spend per category with cross-sell estimate."""

    category: str
    raw_category: str
    total_spent: float
    order_count: int
    customer_count: int
    units_sold: int
    average_order_value: float
    percentage_of_revenue: float
    estimated_profit: float
    profit_margin: float
    cross_sell_opportunity: float
    estimated: bool = True


# =============================================================================
# Business Metrics (heuristic estimates)
# =============================================================================


class AOVWeek(BaseModel):
    """Average order value for one ISO week."""

    week: str
    aov: float


class AOVTrend(BaseModel):
    """Week-over-week average order value."""

    current: float = 0.0
    trend_pct: float = 0.0
    history: list[AOVWeek] = Field(default_factory=list)


class CLVProjection(BaseModel):
    """Projected customer lifetime value (heuristic estimate)."""

    customer_id: str
    current_value: float
    projected_value: float
    growth_potential: float
    tier: CLVTier
    avg_order_value: float
    purchase_frequency: float
    estimated: bool = True


class RetentionRates(BaseModel):
    """Share of customers by recent purchase activity."""

    active_rate: float = 0.0
    at_risk_rate: float = 0.0
    churn_rate: float = 0.0
    active_customers: int = 0
    at_risk_customers: int = 0
    churned_customers: int = 0


class ProfitabilityMetrics(BaseModel):
    """Revenue split by fixed COGS and operating-expense ratios (estimate)."""

    total_revenue: float = 0.0
    cogs: float = 0.0
    gross_profit: float = 0.0
    gross_margin: float = 0.0
    operating_expenses: float = 0.0
    net_profit: float = 0.0
    net_margin: float = 0.0
    estimated: bool = True


class CategoryProfitability(BaseModel):
    """Per-category revenue and estimated profit."""

    category: str
    revenue: float
    units: int
    estimated_profit: float
    margin: float
    product_count: int
    avg_unit_value: float
    estimated: bool = True


class SeasonalMonth(BaseModel):
    """Monthly revenue within the seasonal window."""

    month: str
    revenue: float
    orders: int
    customers: int
    aov: float


class EnrichedSegment(CustomerSegment):
    """Value segment with revenue share and average projected CLV."""

    total_revenue: float = 0.0
    revenue_percentage: float = 0.0
    avg_clv: float = 0.0


class BusinessMetrics(BaseModel):
    """Executive metrics computed over the unfiltered snapshot."""

    aov_trend: AOVTrend
    clv_projections: list[CLVProjection]
    avg_projected_clv: float
    clv_tier_counts: dict[str, int]
    retention: RetentionRates
    profitability: ProfitabilityMetrics
    category_profitability: list[CategoryProfitability]
    seasonal_trends: list[SeasonalMonth]
    customer_segments: list[EnrichedSegment]
    generation: int


# =============================================================================
# Report Response
# =============================================================================


class SalesReport(BaseModel):
    trend: list[SalesTrendPoint]
    categories: list[CategorySales]
    customer_types: CustomerTypeBreakdown
    top_products: list[TopProduct]


class PaymentReport(BaseModel):
    methods: list[PaymentMethodStats]
    success: PaymentSuccessOverview
    by_time: list[TimeSlotBucket]


class ProductReport(BaseModel):
    performance: list[ProductPerformance]
    top_products: list[TopProduct]
    category_profitability: list[CategoryProfitability]


class CustomerReport(BaseModel):
    customers: list[CustomerLifetime]
    segments: list[CustomerSegment]
    acquisition: list[AcquisitionMonth]
    category_spending: list[CategorySpending]


class ReportResponse(BaseModel):
    """A generated report.

    ``notices`` carries user-facing messages (for example a failed fetch);
    ``fetch_errors`` names the collections that could not be read, so an
    empty section can be told apart from a failed fetch.
    """

    report_type: ReportType
    start_date: date
    end_date: date
    generation: int = Field(..., ge=1, description="Monotonic report generation token.")
    stale: bool = Field(
        False, description="True when a newer generation finished first; data not cached."
    )
    filters: ReportFilters
    summary: SummaryCards
    notices: list[str] = Field(default_factory=list)
    fetch_errors: list[str] = Field(default_factory=list)
    sales: SalesReport | None = None
    payment: PaymentReport | None = None
    product: ProductReport | None = None
    customer: CustomerReport | None = None


# =============================================================================
# Drilldowns
# =============================================================================


class SalesDayDrilldown(BaseModel):
    date: date
    revenue: float
    order_count: int
    avg_order_value: float
    revenue_trend_pct: float
    order_trend_pct: float
    previous_day: SalesTrendPoint | None = None
    order_ids: list[str]
    customer_ids: list[str]


class CategoryProductSales(BaseModel):
    product_id: str
    name: str
    quantity: int
    revenue: float
    percentage: float


class CategoryDrilldown(BaseModel):
    category: str
    total_revenue: float
    revenue_percentage: float
    estimated_profit: float
    avg_order_value: float
    product_count: int
    order_count: int
    customer_count: int
    products: list[CategoryProductSales]
    order_ids: list[str]
    customer_ids: list[str]


class CustomerTypeDrilldown(BaseModel):
    customer_type: CustomerType
    definition: str
    customer_count: int
    order_count: int
    total_revenue: float
    revenue_percentage: float
    avg_order_value: float
    customer_ids: list[str]
    order_ids: list[str]


class PaymentMethodDrilldown(BaseModel):
    method: str
    transaction_count: int
    success_count: int
    success_rate: float
    total_revenue: float
    revenue_percentage: float
    avg_transaction: float
    order_ids: list[str]
    customer_ids: list[str]


class CustomerRef(BaseModel):
    customer_id: str
    name: str
    email: str
    order_count: int = 0
    total_amount: float = 0.0


class PaymentStatusDrilldown(BaseModel):
    outcome: PaymentOutcome
    count: int
    total_amount: float
    order_ids: list[str]
    customers: list[CustomerRef]
    cancelled_by_customer: int = 0
    cancelled_by_admin: int = 0


class PaymentTimeDrilldown(BaseModel):
    slot: TimeSlot
    order_count: int
    total_revenue: float
    avg_order_value: float
    order_ids: list[str]
    customer_ids: list[str]


class ProductDrilldown(BaseModel):
    product_id: str
    name: str
    category: str
    units_sold: int
    total_revenue: float
    conversion_rate: float
    stock: int
    stock_coverage: float
    avg_price: float
    order_ids: list[str]
    customer_ids: list[str]
    estimated: bool = True


class CustomerDrilldown(BaseModel):
    customer_id: str
    name: str
    email: str
    signup_date: datetime | None = None
    last_login: datetime | None = None
    total_orders: int
    total_spent: float
    avg_order_value: float
    first_purchase: datetime | None = None
    last_purchase: datetime | None = None
    days_since_last_purchase: int | None = None
    purchase_frequency: float = Field(
        ..., description="Orders per 30 days between first and last purchase."
    )
    order_ids: list[str]


class AcquisitionDrilldown(BaseModel):
    month: str
    period_start: date
    period_end: date
    new_customers: int
    activated_customers: int
    activation_rate: float
    customer_ids: list[str]
    activated_customer_ids: list[str]


class SegmentDrilldown(BaseModel):
    segment: ValueSegment
    definition: str
    spending_range: str
    customer_count: int
    total_revenue: float
    revenue_percentage: float
    avg_purchase_frequency: float
    avg_days_since_last_purchase: float | None = None
    customers: list[CustomerRef]


class OrdersSummaryDrilldown(BaseModel):
    total_orders: int
    avg_daily_orders: float
    order_trend_pct: float
    peak_order_day: str | None = None
    customer_ids: list[str]


class RevenueSummaryDrilldown(BaseModel):
    total_revenue: float
    avg_daily_revenue: float
    revenue_trend_pct: float
    revenue_by_category: dict[str, float]


class ProductsSummaryDrilldown(BaseModel):
    total_units: int
    avg_products_per_order: float
    top_products: list[TopProduct]
    inventory_turnover: float | None = Field(
        None, description="Revenue over stock value at cost; null when no product has a cost."
    )


class NewCustomer(BaseModel):
    customer_id: str
    name: str
    email: str
    signup_date: datetime | None = None
    first_order_date: datetime | None = None
    total_orders: int
    total_spent: float
    status: str


class NewCustomersDrilldown(BaseModel):
    total_new_customers: int
    customers: list[NewCustomer]
