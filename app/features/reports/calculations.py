"""Aggregation core for the report sections.

All functions are pure: they take lists of records (plus the report time zone
or heuristics where needed) and return new aggregate structures. Missing
numbers count as 0 and every ratio is guarded against division by zero.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.core.config import ReportHeuristics
from app.features.reports.filters import (
    category_key,
    customer_type_of,
    product_index,
    resolve_product,
)
from app.features.reports.formatting import (
    capitalize_label,
    customer_display_name,
    customer_email,
    local_day,
    local_month,
    percentage_of,
    safe_divide,
    to_local,
)
from app.features.reports.schemas import (
    AcquisitionMonth,
    CategorySales,
    CategorySpending,
    Customer,
    CustomerLifetime,
    CustomerSegment,
    CustomerSpend,
    CustomerStatus,
    CustomerType,
    CustomerTypeBreakdown,
    CustomerTypeBucket,
    Order,
    PaymentMethodStats,
    PaymentOutcome,
    PaymentSuccessOverview,
    Product,
    ProductPerformance,
    SalesTrendPoint,
    SummaryCards,
    TimeSlot,
    TimeSlotBucket,
    TopProduct,
    ValueSegment,
)
from app.features.reports.status import classify_order, is_payment_method_success

SEGMENT_ORDER = (
    ValueSegment.HIGH,
    ValueSegment.MEDIUM,
    ValueSegment.LOW,
    ValueSegment.NEW_INACTIVE,
)


def _unique(values: Iterable[str | None]) -> list[str]:
    """Distinct non-empty values in first-seen order."""
    return list(dict.fromkeys(v for v in values if v))


# =============================================================================
# Shared predicates
# =============================================================================


def time_slot_of(moment: datetime, tz: ZoneInfo) -> TimeSlot:
    """Time-of-day slot of a timestamp's local hour."""
    hour = to_local(moment, tz).hour
    if 6 <= hour < 12:
        return TimeSlot.MORNING
    if 12 <= hour < 18:
        return TimeSlot.AFTERNOON
    if 18 <= hour < 24:
        return TimeSlot.EVENING
    return TimeSlot.NIGHT


def customer_status_of(days_since_last_purchase: int | None, h: ReportHeuristics) -> CustomerStatus:
    """Recency label: Active, At Risk or Inactive."""
    if days_since_last_purchase is None:
        return CustomerStatus.INACTIVE
    if days_since_last_purchase <= h.customer_active_days:
        return CustomerStatus.ACTIVE
    if days_since_last_purchase <= h.customer_at_risk_days:
        return CustomerStatus.AT_RISK
    return CustomerStatus.INACTIVE


def value_segment_of(order_count: int, total_spent: float, h: ReportHeuristics) -> ValueSegment:
    """Value segment of a customer. Every customer maps to exactly one segment."""
    if order_count <= 0 or total_spent <= 0:
        return ValueSegment.NEW_INACTIVE
    if total_spent > h.segment_high_value:
        return ValueSegment.HIGH
    if total_spent > h.segment_medium_value:
        return ValueSegment.MEDIUM
    return ValueSegment.LOW


def segment_definition(segment: ValueSegment, h: ReportHeuristics, symbol: str = "R") -> str:
    """Human-readable segment definition."""
    high, medium = f"{symbol}{h.segment_high_value:g}", f"{symbol}{h.segment_medium_value:g}"
    return {
        ValueSegment.HIGH: f"Customers who have spent more than {high} total",
        ValueSegment.MEDIUM: f"Customers who have spent between {medium} and {high} total",
        ValueSegment.LOW: f"Customers who have spent less than {medium} total",
        ValueSegment.NEW_INACTIVE: "Customers with no orders yet",
    }[segment]


def spending_range(segment: ValueSegment, h: ReportHeuristics, symbol: str = "R") -> str:
    """Spending range label of a segment."""
    high, medium = f"{symbol}{h.segment_high_value:g}", f"{symbol}{h.segment_medium_value:g}"
    return {
        ValueSegment.HIGH: f"> {high}",
        ValueSegment.MEDIUM: f"{medium} - {high}",
        ValueSegment.LOW: f"< {medium}",
        ValueSegment.NEW_INACTIVE: "No orders",
    }[segment]


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days from ``earlier`` to ``later``."""
    if (earlier.tzinfo is None) != (later.tzinfo is None):
        earlier = earlier.replace(tzinfo=None)
        later = later.replace(tzinfo=None)
    return (later - earlier).days


# =============================================================================
# Summary
# =============================================================================


def summary_cards(orders: Sequence[Order]) -> SummaryCards:
    """Headline order count, revenue, units sold and distinct customers."""
    return SummaryCards(
        total_orders=len(orders),
        total_revenue=sum(o.total for o in orders),
        total_products_sold=sum(o.total_quantity for o in orders),
        total_customers=len(_unique(o.customer_id for o in orders)),
    )


# =============================================================================
# Sales
# =============================================================================


def sales_trend(orders: Iterable[Order], tz: ZoneInfo) -> list[SalesTrendPoint]:
    """Group orders by local calendar day, ascending by date.

    The sum of the day totals always equals the sum of the order totals.
    """
    days: dict[date, SalesTrendPoint] = {}
    customers: dict[date, list[str | None]] = defaultdict(list)
    for order in orders:
        day = local_day(order.created_at, tz)
        point = days.get(day)
        if point is None:
            point = days[day] = SalesTrendPoint(date=day, total=0.0, count=0)
        point.total += order.total
        point.count += 1
        point.order_ids.append(order.id)
        customers[day].append(order.customer_id)

    for day, point in days.items():
        point.customer_count = len(_unique(customers[day]))
    return [days[day] for day in sorted(days)]


def sales_by_category(orders: Iterable[Order], products: Iterable[Product]) -> list[CategorySales]:
    """Attribute line-item revenue to product categories.

    Items whose product no longer exists (or has no category) are skipped, so
    the category totals never exceed the order totals. Descending by total.
    """
    index = product_index(products)
    totals: dict[str, float] = defaultdict(float)
    order_ids: dict[str, list[str]] = defaultdict(list)
    product_ids: dict[str, set[str]] = defaultdict(set)
    customer_ids: dict[str, list[str | None]] = defaultdict(list)
    spellings: dict[str, str] = {}

    for order in orders:
        for item in order.items:
            product = resolve_product(item, index)
            if product is None or not category_key(product.category):
                continue
            category = category_key(product.category)
            spellings.setdefault(category, product.category.strip())
            totals[category] += item.line_total
            if order.id not in order_ids[category]:
                order_ids[category].append(order.id)
            product_ids[category].add(product.id)
            customer_ids[category].append(order.customer_id)

    result = [
        CategorySales(
            category=capitalize_label(spellings[category]),
            raw_category=spellings[category],
            total=total,
            order_count=len(order_ids[category]),
            product_count=len(product_ids[category]),
            customer_count=len(_unique(customer_ids[category])),
            order_ids=order_ids[category],
        )
        for category, total in totals.items()
    ]
    return sorted(result, key=lambda c: c.total, reverse=True)


def customer_type_breakdown(orders: Iterable[Order], threshold: int = 10) -> CustomerTypeBreakdown:
    """Split orders into bulk (more than ``threshold`` units) and regular."""
    buckets = {
        CustomerType.BULK: CustomerTypeBucket(customer_type=CustomerType.BULK),
        CustomerType.REGULAR: CustomerTypeBucket(customer_type=CustomerType.REGULAR),
    }
    customers: dict[CustomerType, list[str | None]] = defaultdict(list)
    for order in orders:
        kind = customer_type_of(order, threshold)
        buckets[kind].count += 1
        buckets[kind].total += order.total
        customers[kind].append(order.customer_id)

    for kind, bucket in buckets.items():
        bucket.customer_ids = _unique(customers[kind])
    return CustomerTypeBreakdown(
        bulk=buckets[CustomerType.BULK], regular=buckets[CustomerType.REGULAR]
    )


def top_products(
    orders: Iterable[Order], products: Iterable[Product], limit: int = 10
) -> list[TopProduct]:
    """Best sellers by revenue.

    ``percentage`` is each product's share of the revenue of the returned
    top-``limit`` set, so the percentages sum to 100 whenever that revenue
    is positive.
    """
    index = product_index(products)
    quantity: dict[str, int] = defaultdict(int)
    revenue: dict[str, float] = defaultdict(float)
    customers: dict[str, list[str | None]] = defaultdict(list)

    for order in orders:
        for item in order.items:
            product = resolve_product(item, index)
            if product is None:
                continue
            quantity[product.id] += item.quantity
            revenue[product.id] += item.line_total
            customers[product.id].append(order.customer_id)

    ranked = sorted(revenue, key=lambda pid: revenue[pid], reverse=True)[:limit]
    top_revenue = sum(revenue[pid] for pid in ranked)
    return [
        TopProduct(
            product_id=pid,
            name=index[pid].name,
            category=index[pid].category,
            quantity=quantity[pid],
            revenue=revenue[pid],
            percentage=percentage_of(revenue[pid], top_revenue),
            customer_count=len(_unique(customers[pid])),
        )
        for pid in ranked
    ]


# =============================================================================
# Payment
# =============================================================================


def payment_methods(orders: Iterable[Order]) -> list[PaymentMethodStats]:
    """Per payment method (default cash): count, successes, revenue, customers."""
    stats: dict[str, PaymentMethodStats] = {}
    customers: dict[str, list[str | None]] = defaultdict(list)
    for order in orders:
        method = order.method
        bucket = stats.get(method)
        if bucket is None:
            bucket = stats[method] = PaymentMethodStats(method=method)
        bucket.count += 1
        bucket.total += order.total
        if is_payment_method_success(order, method):
            bucket.success += 1
        customers[method].append(order.customer_id)

    for method, bucket in stats.items():
        bucket.customer_ids = _unique(customers[method])
    return list(stats.values())


def payment_success(orders: Iterable[Order]) -> PaymentSuccessOverview:
    """Count orders per classified payment outcome."""
    overview = PaymentSuccessOverview()
    for order in orders:
        outcome = classify_order(order)
        if outcome is PaymentOutcome.SUCCESS:
            overview.success += 1
            overview.success_order_ids.append(order.id)
        elif outcome is PaymentOutcome.FAILED:
            overview.failed += 1
            overview.failed_order_ids.append(order.id)
        else:
            overview.pending += 1
            overview.pending_order_ids.append(order.id)
    return overview


def payment_by_time(orders: Iterable[Order], tz: ZoneInfo) -> list[TimeSlotBucket]:
    """Orders per local time-of-day slot, in fixed slot order."""
    buckets = {slot: TimeSlotBucket(slot=slot) for slot in TimeSlot}
    customers: dict[TimeSlot, list[str | None]] = defaultdict(list)
    for order in orders:
        slot = time_slot_of(order.created_at, tz)
        buckets[slot].count += 1
        buckets[slot].total += order.total
        customers[slot].append(order.customer_id)

    for slot, bucket in buckets.items():
        bucket.customer_ids = _unique(customers[slot])
    return list(buckets.values())


# =============================================================================
# Product
# =============================================================================


def estimated_views(sold: int, h: ReportHeuristics) -> float:
    """Placeholder page-view estimate: ``sold / view_conversion`` or a default."""
    return sold / h.view_conversion if sold > 0 else float(h.default_views)


def product_performance(
    orders: Iterable[Order], products: Sequence[Product], h: ReportHeuristics
) -> list[ProductPerformance]:
    """Sales and heuristic engagement figures for every catalog product.

    Products that sold nothing and are not active are dropped. Descending by
    revenue.
    """
    sold: dict[str, int] = defaultdict(int)
    revenue: dict[str, float] = defaultdict(float)
    customers: dict[str, list[str | None]] = defaultdict(list)
    known = {p.id for p in products}

    for order in orders:
        for item in order.items:
            if item.product_id not in known:
                continue
            sold[item.product_id] += item.quantity
            revenue[item.product_id] += item.line_total
            customers[item.product_id].append(order.customer_id)

    result = []
    for product in products:
        units = sold[product.id]
        if units <= 0 and product.status != "active":
            continue
        views = estimated_views(units, h)
        product_revenue = revenue[product.id]
        profit = product_revenue * h.product_margin
        result.append(
            ProductPerformance(
                product_id=product.id,
                name=product.name,
                category=product.category,
                sold=units,
                revenue=product_revenue,
                stock=product.stock,
                price=product.price,
                status=product.status,
                estimated_views=views,
                conversion_rate=percentage_of(units, views),
                estimated_profit=profit,
                profit_margin=percentage_of(profit, product_revenue),
                customer_count=len(_unique(customers[product.id])),
            )
        )
    return sorted(result, key=lambda p: p.revenue, reverse=True)


# =============================================================================
# Customer
# =============================================================================


def customer_lifetime(
    orders: Iterable[Order],
    customers: Iterable[Customer],
    now: datetime,
    h: ReportHeuristics,
) -> list[CustomerLifetime]:
    """Purchase history per customer with at least one order.

    Orders without a customer reference are ignored. The display name comes
    from the first order that carries one, then the customer record.
    Descending by total spend.
    """
    catalog = {c.id: c for c in customers}
    grouped: dict[str, list[Order]] = defaultdict(list)
    for order in orders:
        if order.customer_id:
            grouped[order.customer_id].append(order)

    result = []
    for customer_id, history in grouped.items():
        customer = catalog.get(customer_id)
        named = next((o for o in history if o.customer_name), history[0])
        spent = sum(o.total for o in history)
        first = min(o.created_at for o in history)
        last = max(o.created_at for o in history)
        days = days_between(last, now)
        result.append(
            CustomerLifetime(
                customer_id=customer_id,
                name=customer_display_name(customer, named),
                email=customer_email(customer, named) or "No email",
                order_count=len(history),
                total_spent=spent,
                avg_order_value=safe_divide(spent, len(history)),
                first_purchase=first,
                last_purchase=last,
                signup_date=customer.created_at if customer and customer.created_at else first,
                days_since_last_purchase=days,
                status=customer_status_of(days, h),
            )
        )
    return sorted(result, key=lambda c: c.total_spent, reverse=True)


def customer_spend(orders: Iterable[Order], customers: Iterable[Customer]) -> list[CustomerSpend]:
    """Order count and spend of every catalog customer (0 for no orders)."""
    count: dict[str, int] = defaultdict(int)
    spent: dict[str, float] = defaultdict(float)
    for order in orders:
        if order.customer_id:
            count[order.customer_id] += 1
            spent[order.customer_id] += order.total
    return [
        CustomerSpend(customer_id=c.id, order_count=count[c.id], total_spent=spent[c.id])
        for c in customers
    ]


def customer_segments(
    spend: Iterable[CustomerSpend], h: ReportHeuristics, symbol: str = "R"
) -> list[CustomerSegment]:
    """Bucket customers into value segments (exhaustive and disjoint)."""
    segments = {
        segment: CustomerSegment(
            segment=segment,
            definition=segment_definition(segment, h, symbol),
            spending_range=spending_range(segment, h, symbol),
        )
        for segment in SEGMENT_ORDER
    }
    for entry in spend:
        segment = segments[value_segment_of(entry.order_count, entry.total_spent, h)]
        segment.count += 1
        segment.customer_ids.append(entry.customer_id)
    return list(segments.values())


def customer_acquisition(customers: Iterable[Customer], tz: ZoneInfo) -> list[AcquisitionMonth]:
    """Signup cohorts by local month, ascending. Customers without a signup date are skipped."""
    months: dict[str, AcquisitionMonth] = {}
    for customer in customers:
        if customer.created_at is None:
            continue
        key = local_month(customer.created_at, tz)
        cohort = months.get(key)
        if cohort is None:
            cohort = months[key] = AcquisitionMonth(month=key)
        cohort.count += 1
        cohort.customer_ids.append(customer.id)
    return [months[key] for key in sorted(months)]


def category_spending(
    orders: Iterable[Order], products: Iterable[Product], h: ReportHeuristics
) -> list[CategorySpending]:
    """Customer spend per category with a cross-sell estimate.

    Cross-sell opportunity is the category's share of category customers
    scaled by ``cross_sell_factor`` and capped at 100 (a heuristic).
    """
    index = product_index(products)
    spent: dict[str, float] = defaultdict(float)
    units: dict[str, int] = defaultdict(int)
    order_ids: dict[str, set[str]] = defaultdict(set)
    customers: dict[str, list[str | None]] = defaultdict(list)
    spellings: dict[str, str] = {}

    for order in orders:
        for item in order.items:
            product = resolve_product(item, index)
            if product is None or not category_key(product.category):
                continue
            category = category_key(product.category)
            spellings.setdefault(category, product.category.strip())
            spent[category] += item.line_total
            units[category] += item.quantity
            order_ids[category].add(order.id)
            customers[category].append(order.customer_id)

    total_revenue = sum(spent.values())
    customer_counts = {cat: len(_unique(ids)) for cat, ids in customers.items()}
    total_customers = sum(customer_counts.values())

    result = []
    for category, amount in spent.items():
        profit = amount * h.product_margin
        penetration = percentage_of(customer_counts[category], total_customers)
        result.append(
            CategorySpending(
                category=capitalize_label(spellings[category]),
                raw_category=spellings[category],
                total_spent=amount,
                order_count=len(order_ids[category]),
                customer_count=customer_counts[category],
                units_sold=units[category],
                average_order_value=safe_divide(amount, len(order_ids[category])),
                percentage_of_revenue=percentage_of(amount, total_revenue),
                estimated_profit=profit,
                profit_margin=percentage_of(profit, amount),
                cross_sell_opportunity=min(100.0, penetration * h.cross_sell_factor),
            )
        )
    return sorted(result, key=lambda c: c.total_spent, reverse=True)

