"""Drilldowns over the latest report context.

Each drilldown re-selects the orders of one aggregate bucket from the
context's filtered orders, using the same predicates as the calculation that
built the bucket, then computes a few bucket-scoped metrics.
"""

import calendar
import re
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta

from app.core.exceptions import BadRequestError, NotFoundError
from app.core.logging import get_logger
from app.features.reports.calculations import (
    days_between,
    segment_definition,
    spending_range,
    time_slot_of,
    top_products,
    value_segment_of,
)
from app.features.reports.context import ReportContext
from app.features.reports.filters import (
    category_key,
    matches_category,
    order_has_category,
    product_index,
    resolve_product,
)
from app.features.reports.formatting import (
    capitalize_label,
    customer_display_name,
    customer_email,
    local_day,
    percent_change,
    percentage_of,
    safe_divide,
    to_local,
)
from app.features.reports.schemas import (
    AcquisitionDrilldown,
    CategoryDrilldown,
    CategoryProductSales,
    CustomerDrilldown,
    CustomerRef,
    CustomerType,
    CustomerTypeDrilldown,
    NewCustomer,
    NewCustomersDrilldown,
    Order,
    OrdersSummaryDrilldown,
    PaymentMethodDrilldown,
    PaymentOutcome,
    PaymentStatusDrilldown,
    PaymentTimeDrilldown,
    ProductDrilldown,
    ProductsSummaryDrilldown,
    RevenueSummaryDrilldown,
    SalesDayDrilldown,
    SalesTrendPoint,
    SegmentDrilldown,
    TimeSlot,
    ValueSegment,
)
from app.features.reports.status import (
    cancellation_source,
    classify_order,
    is_payment_method_success,
)

logger = get_logger(__name__)

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

# Days of sales a product's stock is compared against
STOCK_COVERAGE_DAYS = 30


def _unique(values: Iterable[str | None]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def _revenue(orders: Iterable[Order]) -> float:
    return sum(o.total for o in orders)


def _orders_by_customer(orders: Iterable[Order]) -> dict[str, list[Order]]:
    grouped: dict[str, list[Order]] = defaultdict(list)
    for order in orders:
        if order.customer_id:
            grouped[order.customer_id].append(order)
    return grouped


def _customer_refs(ctx: ReportContext, orders: Sequence[Order]) -> list[CustomerRef]:
    """Distinct customers of ``orders`` with their order count and spend."""
    refs: dict[str, CustomerRef] = {}
    for order in orders:
        if not order.customer_id:
            continue
        ref = refs.get(order.customer_id)
        if ref is None:
            customer = ctx.customer(order.customer_id)
            ref = refs[order.customer_id] = CustomerRef(
                customer_id=order.customer_id,
                name=customer_display_name(customer, order),
                email=customer_email(customer, order) or "No email",
            )
        ref.order_count += 1
        ref.total_amount += order.total
    return sorted(refs.values(), key=lambda r: r.total_amount, reverse=True)


def _split_halves(ctx: ReportContext, orders: Iterable[Order]) -> tuple[list[Order], list[Order]]:
    """Split orders at the midpoint of the report range."""
    midpoint = to_local(ctx.start, ctx.tz) + (ctx.end - ctx.start) / 2
    first: list[Order] = []
    second: list[Order] = []
    for order in orders:
        (first if to_local(order.created_at, ctx.tz) < midpoint else second).append(order)
    return first, second


def _log(kind: str, ctx: ReportContext, **extra: object) -> None:
    logger.info("reports.drilldown_computed", kind=kind, generation=ctx.generation, **extra)


# =============================================================================
# Sales
# =============================================================================


def sales_day(ctx: ReportContext, day: date) -> SalesDayDrilldown:
    """One day of the sales trend, compared with the previous calendar day.

    Raises:
        NotFoundError: If no order was placed on ``day``.
    """
    orders = [o for o in ctx.filtered_orders if local_day(o.created_at, ctx.tz) == day]
    if not orders:
        raise NotFoundError(f"No sales on {day.isoformat()}", details={"date": day.isoformat()})

    previous_day = day - timedelta(days=1)
    previous = [o for o in ctx.filtered_orders if local_day(o.created_at, ctx.tz) == previous_day]
    revenue, previous_revenue = _revenue(orders), _revenue(previous)
    customer_ids = _unique(o.customer_id for o in orders)

    _log("sales_day", ctx, date=day.isoformat(), orders=len(orders))
    return SalesDayDrilldown(
        date=day,
        revenue=revenue,
        order_count=len(orders),
        avg_order_value=safe_divide(revenue, len(orders)),
        revenue_trend_pct=percent_change(revenue, previous_revenue),
        order_trend_pct=percent_change(len(orders), len(previous)),
        previous_day=(
            SalesTrendPoint(
                date=previous_day,
                total=previous_revenue,
                count=len(previous),
                customer_count=len(_unique(o.customer_id for o in previous)),
                order_ids=[o.id for o in previous],
            )
            if previous
            else None
        ),
        order_ids=[o.id for o in orders],
        customer_ids=customer_ids,
    )


def category(ctx: ReportContext, name: str) -> CategoryDrilldown:
    """Orders and products of one category, with its share of all revenue.

    Raises:
        NotFoundError: If no sold item belongs to the category.
    """
    index = product_index(ctx.products)
    orders = [o for o in ctx.filtered_orders if order_has_category(o, index, name)]
    if not orders:
        raise NotFoundError(f"No sales in category '{name}'", details={"category": name})

    quantity: dict[str, int] = defaultdict(int)
    revenue: dict[str, float] = defaultdict(float)
    for order in orders:
        for item in order.items:
            product = resolve_product(item, index)
            if product is not None and matches_category(product.category, name):
                quantity[product.id] += item.quantity
                revenue[product.id] += item.line_total

    category_revenue = sum(revenue.values())
    products = sorted(
        (
            CategoryProductSales(
                product_id=pid,
                name=index[pid].name,
                quantity=quantity[pid],
                revenue=revenue[pid],
                percentage=percentage_of(revenue[pid], category_revenue),
            )
            for pid in revenue
        ),
        key=lambda p: p.revenue,
        reverse=True,
    )
    customer_ids = _unique(o.customer_id for o in orders)

    _log("category", ctx, category=name, orders=len(orders))
    return CategoryDrilldown(
        category=capitalize_label(name),
        total_revenue=category_revenue,
        revenue_percentage=percentage_of(category_revenue, _revenue(ctx.filtered_orders)),
        estimated_profit=category_revenue * ctx.heuristics.product_margin,
        avg_order_value=safe_divide(category_revenue, len(orders)),
        product_count=len(products),
        order_count=len(orders),
        customer_count=len(customer_ids),
        products=products,
        order_ids=[o.id for o in orders],
        customer_ids=customer_ids,
    )


def customer_type(ctx: ReportContext, kind: CustomerType) -> CustomerTypeDrilldown:
    """Customers whose average units per order classify as ``kind``."""
    threshold = ctx.heuristics.bulk_quantity_threshold
    matched: list[str] = []
    orders: list[Order] = []
    for customer_id, history in _orders_by_customer(ctx.filtered_orders).items():
        avg_units = safe_divide(sum(o.total_quantity for o in history), len(history))
        is_bulk = avg_units > threshold
        if is_bulk == (kind is CustomerType.BULK):
            matched.append(customer_id)
            orders.extend(history)

    revenue = _revenue(orders)
    _log("customer_type", ctx, customer_type=kind.value, customers=len(matched))
    return CustomerTypeDrilldown(
        customer_type=kind,
        definition=(
            f"Average of more than {threshold} units per order"
            if kind is CustomerType.BULK
            else f"Average of {threshold} units or fewer per order"
        ),
        customer_count=len(matched),
        order_count=len(orders),
        total_revenue=revenue,
        revenue_percentage=percentage_of(revenue, _revenue(ctx.filtered_orders)),
        avg_order_value=safe_divide(revenue, len(orders)),
        customer_ids=matched,
        order_ids=[o.id for o in orders],
    )


# =============================================================================
# Payment
# =============================================================================


def payment_method(ctx: ReportContext, method: str) -> PaymentMethodDrilldown:
    """Orders paid with ``method``.

    Raises:
        NotFoundError: If no order used the method.
    """
    wanted = method.strip().lower()
    orders = [o for o in ctx.filtered_orders if o.method == wanted]
    if not orders:
        raise NotFoundError(f"No orders paid with '{method}'", details={"method": method})

    successes = sum(1 for o in orders if is_payment_method_success(o, wanted))
    revenue = _revenue(orders)
    _log("payment_method", ctx, method=wanted, orders=len(orders))
    return PaymentMethodDrilldown(
        method=wanted,
        transaction_count=len(orders),
        success_count=successes,
        success_rate=percentage_of(successes, len(orders)),
        total_revenue=revenue,
        revenue_percentage=percentage_of(revenue, _revenue(ctx.filtered_orders)),
        avg_transaction=safe_divide(revenue, len(orders)),
        order_ids=[o.id for o in orders],
        customer_ids=_unique(o.customer_id for o in orders),
    )


def payment_status(ctx: ReportContext, outcome: PaymentOutcome) -> PaymentStatusDrilldown:
    """Orders and customers with a classified payment ``outcome``."""
    orders = [o for o in ctx.filtered_orders if classify_order(o) is outcome]
    sources = Counter(cancellation_source(o) for o in orders)

    _log("payment_status", ctx, outcome=outcome.value, orders=len(orders))
    return PaymentStatusDrilldown(
        outcome=outcome,
        count=len(orders),
        total_amount=_revenue(orders),
        order_ids=[o.id for o in orders],
        customers=_customer_refs(ctx, orders),
        cancelled_by_customer=sources["customer"],
        cancelled_by_admin=sources["admin"],
    )


def payment_time(ctx: ReportContext, slot: TimeSlot) -> PaymentTimeDrilldown:
    """Orders placed in one time-of-day slot."""
    orders = [o for o in ctx.filtered_orders if time_slot_of(o.created_at, ctx.tz) is slot]
    revenue = _revenue(orders)

    _log("payment_time", ctx, slot=slot.name, orders=len(orders))
    return PaymentTimeDrilldown(
        slot=slot,
        order_count=len(orders),
        total_revenue=revenue,
        avg_order_value=safe_divide(revenue, len(orders)),
        order_ids=[o.id for o in orders],
        customer_ids=_unique(o.customer_id for o in orders),
    )


# =============================================================================
# Product
# =============================================================================


def product(ctx: ReportContext, product_id: str) -> ProductDrilldown:
    """Sales of one catalog product.

    ``conversion_rate`` uses the placeholder view estimate. ``stock_coverage``
    is the average daily units over a 30-day window as a share of stock.

    Raises:
        NotFoundError: If the product is not in the catalog.
    """
    found = ctx.product(product_id)
    if found is None:
        raise NotFoundError(f"Product not found: {product_id}", details={"product_id": product_id})

    units = 0
    revenue = 0.0
    orders: list[Order] = []
    for order in ctx.filtered_orders:
        lines = [item for item in order.items if item.product_id == product_id]
        if not lines:
            continue
        units += sum(item.quantity for item in lines)
        revenue += sum(item.line_total for item in lines)
        orders.append(order)

    h = ctx.heuristics
    views = units / h.view_conversion if units > 0 else float(h.default_views)
    coverage = percentage_of(units / STOCK_COVERAGE_DAYS, found.stock) if found.stock > 0 else 0.0

    _log("product", ctx, product_id=product_id, units=units)
    return ProductDrilldown(
        product_id=found.id,
        name=found.name,
        category=found.category,
        units_sold=units,
        total_revenue=revenue,
        conversion_rate=percentage_of(units, views),
        stock=found.stock,
        stock_coverage=coverage,
        avg_price=safe_divide(revenue, units),
        order_ids=[o.id for o in orders],
        customer_ids=_unique(o.customer_id for o in orders),
    )


# =============================================================================
# Customer
# =============================================================================


def customer(ctx: ReportContext, customer_id: str) -> CustomerDrilldown:
    """Profile and purchase history of one customer.

    Purchase frequency is orders per 30 days between the first and last
    purchase; spans shorter than 30 days count as one period.

    Raises:
        NotFoundError: If the customer is neither in the catalog nor on any order.
    """
    record = ctx.customer(customer_id)
    orders = sorted(
        (o for o in ctx.filtered_orders if o.customer_id == customer_id),
        key=lambda o: o.created_at,
    )
    if record is None and not orders:
        raise NotFoundError(
            f"Customer not found: {customer_id}", details={"customer_id": customer_id}
        )

    first = orders[0].created_at if orders else None
    last = orders[-1].created_at if orders else None
    spent = _revenue(orders)
    frequency = 0.0
    if first is not None and last is not None:
        periods = max(days_between(first, last) / 30, 1.0)
        frequency = len(orders) / periods
    named = next((o for o in orders if o.customer_name), orders[0] if orders else None)

    _log("customer", ctx, customer_id=customer_id, orders=len(orders))
    return CustomerDrilldown(
        customer_id=customer_id,
        name=customer_display_name(record, named),
        email=customer_email(record, named) or "No email",
        signup_date=record.created_at if record else None,
        last_login=record.last_login if record else None,
        total_orders=len(orders),
        total_spent=spent,
        avg_order_value=safe_divide(spent, len(orders)),
        first_purchase=first,
        last_purchase=last,
        days_since_last_purchase=days_between(last, ctx.now) if last else None,
        purchase_frequency=frequency,
        order_ids=[o.id for o in orders],
    )


def acquisition_month(ctx: ReportContext, month: str) -> AcquisitionDrilldown:
    """Customers who signed up in ``month`` (YYYY-MM) and how many went on to order.

    Raises:
        BadRequestError: If ``month`` is not a valid YYYY-MM value.
    """
    match = MONTH_PATTERN.match(month)
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise BadRequestError(
            f"Invalid month '{month}', expected YYYY-MM", details={"month": month}
        )

    year, month_number = int(match.group(1)), int(match.group(2))
    period_start = date(year, month_number, 1)
    period_end = date(year, month_number, calendar.monthrange(year, month_number)[1])

    signed_up = [
        c.id
        for c in ctx.customers
        if c.created_at is not None
        and period_start <= local_day(c.created_at, ctx.tz) <= period_end
    ]
    ordering = {o.customer_id for o in ctx.filtered_orders if o.customer_id}
    activated = [cid for cid in signed_up if cid in ordering]

    _log("acquisition_month", ctx, month=month, new_customers=len(signed_up))
    return AcquisitionDrilldown(
        month=month,
        period_start=period_start,
        period_end=period_end,
        new_customers=len(signed_up),
        activated_customers=len(activated),
        activation_rate=percentage_of(len(activated), len(signed_up)),
        customer_ids=signed_up,
        activated_customer_ids=activated,
    )


def customer_segment(ctx: ReportContext, segment: ValueSegment) -> SegmentDrilldown:
    """Catalog customers in one value segment."""
    h = ctx.heuristics
    grouped = _orders_by_customer(ctx.filtered_orders)
    members = [
        c
        for c in ctx.customers
        if value_segment_of(len(grouped.get(c.id, [])), _revenue(grouped.get(c.id, [])), h)
        is segment
    ]

    member_orders = [o for c in members for o in grouped.get(c.id, [])]
    revenue = _revenue(member_orders)
    recency = [
        days_between(max(o.created_at for o in grouped[c.id]), ctx.now)
        for c in members
        if grouped.get(c.id)
    ]
    refs = _customer_refs(ctx, member_orders)
    listed = {r.customer_id for r in refs}
    refs.extend(
        CustomerRef(
            customer_id=c.id,
            name=customer_display_name(c),
            email=customer_email(c) or "No email",
        )
        for c in members
        if c.id not in listed
    )

    _log("customer_segment", ctx, segment=segment.value, customers=len(members))
    return SegmentDrilldown(
        segment=segment,
        definition=segment_definition(segment, h, ctx.currency_symbol),
        spending_range=spending_range(segment, h, ctx.currency_symbol),
        customer_count=len(members),
        total_revenue=revenue,
        revenue_percentage=percentage_of(revenue, _revenue(ctx.filtered_orders)),
        avg_purchase_frequency=safe_divide(len(member_orders), len(members)),
        avg_days_since_last_purchase=(
            safe_divide(sum(recency), len(recency)) if recency else None
        ),
        customers=refs,
    )


# =============================================================================
# Summary cards
# =============================================================================


def orders_summary(ctx: ReportContext) -> OrdersSummaryDrilldown:
    """Order volume: daily average, half-over-half trend and busiest weekday."""
    orders = ctx.filtered_orders
    first, second = _split_halves(ctx, orders)
    weekdays = Counter(to_local(o.created_at, ctx.tz).strftime("%A") for o in orders)
    active_days = {local_day(o.created_at, ctx.tz) for o in orders}

    _log("orders_summary", ctx, orders=len(orders))
    return OrdersSummaryDrilldown(
        total_orders=len(orders),
        avg_daily_orders=safe_divide(len(orders), len(active_days)),
        order_trend_pct=percent_change(len(second), len(first)),
        peak_order_day=weekdays.most_common(1)[0][0] if weekdays else None,
        customer_ids=_unique(o.customer_id for o in orders),
    )


def revenue_summary(ctx: ReportContext) -> RevenueSummaryDrilldown:
    """Revenue: daily average, half-over-half trend and revenue per category."""
    orders = ctx.filtered_orders
    first, second = _split_halves(ctx, orders)
    active_days = {local_day(o.created_at, ctx.tz) for o in orders}
    total = _revenue(orders)

    index = product_index(ctx.products)
    by_category: dict[str, float] = defaultdict(float)
    labels: dict[str, str] = {}
    for order in orders:
        for item in order.items:
            found = resolve_product(item, index)
            if found is not None and category_key(found.category):
                key = category_key(found.category)
                labels.setdefault(key, capitalize_label(found.category.strip()))
                by_category[key] += item.line_total

    _log("revenue_summary", ctx, revenue=total)
    return RevenueSummaryDrilldown(
        total_revenue=total,
        avg_daily_revenue=safe_divide(total, len(active_days)),
        revenue_trend_pct=percent_change(_revenue(second), _revenue(first)),
        revenue_by_category={
            labels[key]: amount
            for key, amount in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
        },
    )


def products_summary(ctx: ReportContext) -> ProductsSummaryDrilldown:
    """Units sold, units per order, top five products and inventory turnover.

    Inventory turnover is revenue over stock value at cost and is only
    reported when at least one product carries a cost.
    """
    orders = ctx.filtered_orders
    units = sum(o.total_quantity for o in orders)
    stock_value = sum((p.cost or 0) * p.stock for p in ctx.products)

    _log("products_summary", ctx, units=units)
    return ProductsSummaryDrilldown(
        total_units=units,
        avg_products_per_order=safe_divide(units, len(orders)),
        top_products=top_products(orders, ctx.products, limit=5),
        inventory_turnover=safe_divide(_revenue(orders), stock_value) if stock_value else None,
    )


def new_customers(ctx: ReportContext) -> NewCustomersDrilldown:
    """Customers who signed up, or placed their first order, inside the report range."""
    grouped = _orders_by_customer(ctx.filtered_orders)
    start, end = to_local(ctx.start, ctx.tz), to_local(ctx.end, ctx.tz)

    def in_range(moment: datetime | None) -> bool:
        return moment is not None and start <= to_local(moment, ctx.tz) <= end

    result = []
    for record in ctx.customers:
        history = sorted(grouped.get(record.id, []), key=lambda o: o.created_at)
        first_order = history[0].created_at if history else None
        if not (in_range(record.created_at) or in_range(first_order)):
            continue
        result.append(
            NewCustomer(
                customer_id=record.id,
                name=customer_display_name(record),
                email=record.email or "No email",
                signup_date=record.created_at,
                first_order_date=first_order,
                total_orders=len(history),
                total_spent=_revenue(history),
                status="Active" if history else "Registered",
            )
        )

    _log("new_customers", ctx, customers=len(result))
    return NewCustomersDrilldown(total_new_customers=len(result), customers=result)

