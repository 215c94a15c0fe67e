"""Executive business metrics.

Every figure here is a heuristic estimate built from configured placeholder
ratios (``ReportHeuristics``), not from measured cost, traffic or churn data.
Outputs that depend on a ratio carry ``estimated=True``.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime
from zoneinfo import ZoneInfo

from app.core.config import ReportHeuristics
from app.core.logging import get_logger
from app.features.reports.calculations import (
    customer_segments,
    customer_spend,
    value_segment_of,
)
from app.features.reports.context import ReportContext
from app.features.reports.filters import category_key, product_index, resolve_product
from app.features.reports.formatting import (
    capitalize_label,
    iso_week_key,
    local_month,
    percent_change,
    percentage_of,
    safe_divide,
    shift_months,
    to_local,
)
from app.features.reports.schemas import (
    AOVTrend,
    AOVWeek,
    BusinessMetrics,
    CategoryProfitability,
    CLVProjection,
    CLVTier,
    Customer,
    EnrichedSegment,
    Order,
    Product,
    ProfitabilityMetrics,
    RetentionRates,
    SeasonalMonth,
    ValueSegment,
)

logger = get_logger(__name__)


def clv_tier(projected_value: float) -> CLVTier:
    """Tier of a projected lifetime value."""
    if projected_value > 5000:
        return CLVTier.PREMIUM
    if projected_value > 2000:
        return CLVTier.HIGH
    if projected_value > 500:
        return CLVTier.MEDIUM
    return CLVTier.LOW


def _orders_by_customer(orders: Iterable[Order]) -> dict[str, list[Order]]:
    grouped: dict[str, list[Order]] = defaultdict(list)
    for order in orders:
        if order.customer_id:
            grouped[order.customer_id].append(order)
    return grouped


def aov_trend(orders: Sequence[Order], tz: ZoneInfo) -> AOVTrend:
    """Average order value per ISO week, with week-over-week change.

    The current week is the latest week with orders; when there is no
    earlier week the change is 0.
    """
    if not orders:
        return AOVTrend()

    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for order in orders:
        week = iso_week_key(order.created_at, tz)
        totals[week] += order.total
        counts[week] += 1

    history = [
        AOVWeek(week=week, aov=safe_divide(totals[week], counts[week])) for week in sorted(totals)
    ]
    current = history[-1].aov
    previous = history[-2].aov if len(history) > 1 else current
    return AOVTrend(current=current, trend_pct=percent_change(current, previous), history=history)


def clv_projections(
    customers: Iterable[Customer], orders: Iterable[Order], h: ReportHeuristics
) -> list[CLVProjection]:
    """Project lifetime value for customers with orders (estimate).

    ``projected = avg_order_value * (orders / observation_months) * projection_months``.
    Descending by projected value.
    """
    grouped = _orders_by_customer(orders)
    result = []
    for customer in customers:
        history = grouped.get(customer.id)
        if not history:
            continue
        spent = sum(o.total for o in history)
        aov = spent / len(history)
        frequency = len(history) / h.clv_observation_months
        projected = aov * frequency * h.clv_projection_months
        result.append(
            CLVProjection(
                customer_id=customer.id,
                current_value=spent,
                projected_value=projected,
                growth_potential=projected - spent,
                tier=clv_tier(projected),
                avg_order_value=aov,
                purchase_frequency=frequency,
            )
        )
    return sorted(result, key=lambda p: p.projected_value, reverse=True)


def retention_rates(
    customers: Sequence[Customer],
    orders: Iterable[Order],
    now: datetime,
    tz: ZoneInfo,
    h: ReportHeuristics,
) -> RetentionRates:
    """Split customers by orders placed in the retention window.

    Two or more orders is active, one is at risk, none is churned.
    """
    cutoff = to_local(shift_months(now, -h.retention_window_months), tz)
    recent: dict[str, int] = defaultdict(int)
    for order in orders:
        if order.customer_id and to_local(order.created_at, tz) >= cutoff:
            recent[order.customer_id] += 1

    active = at_risk = churned = 0
    for customer in customers:
        count = recent.get(customer.id, 0)
        if count >= 2:
            active += 1
        elif count == 1:
            at_risk += 1
        else:
            churned += 1

    total = len(customers)
    return RetentionRates(
        active_rate=percentage_of(active, total),
        at_risk_rate=percentage_of(at_risk, total),
        churn_rate=percentage_of(churned, total),
        active_customers=active,
        at_risk_customers=at_risk,
        churned_customers=churned,
    )


def profitability(orders: Iterable[Order], h: ReportHeuristics) -> ProfitabilityMetrics:
    """Split revenue by the COGS and operating-expense ratios (estimate)."""
    revenue = sum(o.total for o in orders)
    cogs = revenue * h.cogs_ratio
    gross = revenue - cogs
    opex = revenue * h.opex_ratio
    net = gross - opex
    return ProfitabilityMetrics(
        total_revenue=revenue,
        cogs=cogs,
        gross_profit=gross,
        gross_margin=percentage_of(gross, revenue),
        operating_expenses=opex,
        net_profit=net,
        net_margin=percentage_of(net, revenue),
    )


def category_profitability(
    orders: Iterable[Order], products: Iterable[Product], h: ReportHeuristics
) -> list[CategoryProfitability]:
    """Per-category revenue with profit after estimated COGS. Descending by revenue."""
    index = product_index(products)
    revenue: dict[str, float] = defaultdict(float)
    units: dict[str, int] = defaultdict(int)
    product_ids: dict[str, set[str]] = defaultdict(set)
    labels: dict[str, str] = {}

    for order in orders:
        for item in order.items:
            product = resolve_product(item, index)
            if product is None or not category_key(product.category):
                continue
            label = category_key(product.category)
            labels.setdefault(label, capitalize_label(product.category.strip()))
            revenue[label] += item.line_total
            units[label] += item.quantity
            product_ids[label].add(product.id)

    result = []
    for label, amount in revenue.items():
        profit = amount - amount * h.cogs_ratio
        result.append(
            CategoryProfitability(
                category=labels[label],
                revenue=amount,
                units=units[label],
                estimated_profit=profit,
                margin=percentage_of(profit, amount),
                product_count=len(product_ids[label]),
                avg_unit_value=safe_divide(amount, units[label]),
            )
        )
    return sorted(result, key=lambda c: c.revenue, reverse=True)


def seasonal_trends(
    orders: Iterable[Order], now: datetime, tz: ZoneInfo, h: ReportHeuristics
) -> list[SeasonalMonth]:
    """Monthly revenue, orders, customers and AOV inside the seasonal window."""
    cutoff = to_local(shift_months(now, -h.seasonal_window_months), tz)
    revenue: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    customers: dict[str, set[str]] = defaultdict(set)

    for order in orders:
        if to_local(order.created_at, tz) < cutoff:
            continue
        month = local_month(order.created_at, tz)
        revenue[month] += order.total
        counts[month] += 1
        if order.customer_id:
            customers[month].add(order.customer_id)

    return [
        SeasonalMonth(
            month=month,
            revenue=revenue[month],
            orders=counts[month],
            customers=len(customers[month]),
            aov=safe_divide(revenue[month], counts[month]),
        )
        for month in sorted(revenue)
    ]


def enriched_segments(
    customers: Sequence[Customer],
    orders: Sequence[Order],
    clv: Iterable[CLVProjection],
    h: ReportHeuristics,
    symbol: str = "R",
) -> list[EnrichedSegment]:
    """Value segments with revenue, revenue share and average projected CLV."""
    spend = customer_spend(orders, customers)
    projected = {p.customer_id: p.projected_value for p in clv}
    revenue: dict[ValueSegment, float] = defaultdict(float)
    for entry in spend:
        revenue[value_segment_of(entry.order_count, entry.total_spent, h)] += entry.total_spent
    total_revenue = sum(revenue.values())

    result = []
    for segment in customer_segments(spend, h, symbol):
        segment_clv = [projected[cid] for cid in segment.customer_ids if cid in projected]
        result.append(
            EnrichedSegment(
                **segment.model_dump(),
                total_revenue=revenue[segment.segment],
                revenue_percentage=percentage_of(revenue[segment.segment], total_revenue),
                avg_clv=safe_divide(sum(segment_clv), len(segment_clv)),
            )
        )
    return result


def compute_business_metrics(ctx: ReportContext) -> BusinessMetrics:
    """Compute every business metric over the context's unfiltered orders."""
    h = ctx.heuristics
    clv = clv_projections(ctx.customers, ctx.orders, h)
    tiers: dict[str, int] = {tier.value: 0 for tier in CLVTier}
    for projection in clv:
        tiers[projection.tier.value] += 1

    metrics = BusinessMetrics(
        aov_trend=aov_trend(ctx.orders, ctx.tz),
        clv_projections=clv,
        avg_projected_clv=safe_divide(sum(p.projected_value for p in clv), len(clv)),
        clv_tier_counts=tiers,
        retention=retention_rates(ctx.customers, ctx.orders, ctx.now, ctx.tz, h),
        profitability=profitability(ctx.orders, h),
        category_profitability=category_profitability(ctx.orders, ctx.products, h),
        seasonal_trends=seasonal_trends(ctx.orders, ctx.now, ctx.tz, h),
        customer_segments=enriched_segments(
            ctx.customers, ctx.orders, clv, h, ctx.currency_symbol
        ),
        generation=ctx.generation,
    )

    logger.info(
        "reports.business_metrics_computed",
        generation=ctx.generation,
        customers=len(ctx.customers),
        orders=len(ctx.orders),
        projected_customers=len(clv),
    )
    return metrics
