"""Report filters and the order predicates shared with drilldowns.

Every predicate used to build an aggregate bucket lives here, so the
drilldown for a bucket selects exactly the orders the bucket was built from.
"""

from collections.abc import Iterable, Mapping

from app.features.reports.schemas import (
    CustomerType,
    Order,
    OrderItem,
    Product,
    ReportFilters,
    ReportType,
)


def product_index(products: Iterable[Product]) -> dict[str, Product]:
    """Index products by id for best-effort line-item joins."""
    return {product.id: product for product in products}


def resolve_product(item: OrderItem, products: Mapping[str, Product]) -> Product | None:
    """Product referenced by a line item, or None when it no longer exists."""
    return products.get(item.product_id)


def customer_type_of(order: Order, threshold: int) -> CustomerType:
    """Bulk when the order's units exceed ``threshold`` (strictly), else regular."""
    return CustomerType.BULK if order.total_quantity > threshold else CustomerType.REGULAR


def category_key(category: str | None) -> str:
    """Grouping key of a category: trimmed and lower-cased."""
    return (category or "").strip().lower()


def matches_category(category: str | None, selected: str) -> bool:
    """Case-insensitive category comparison."""
    return category_key(category) == category_key(selected)


def order_has_category(order: Order, products: Mapping[str, Product], category: str) -> bool:
    """Whether any line item resolves to a product in ``category``."""
    for item in order.items:
        product = resolve_product(item, products)
        if product is not None and matches_category(product.category, category):
            return True
    return False


def apply_filters(
    orders: Iterable[Order],
    products: Iterable[Product],
    report_type: ReportType,
    filters: ReportFilters,
    *,
    bulk_threshold: int = 10,
) -> list[Order]:
    """Apply the filters relevant to ``report_type``.

    - sales: customer type, then category.
    - payment: payment status equality.
    - product: category.
    - customer: nothing.

    Unset filters are no-ops. Returns a new list; inputs are not modified.
    """
    result = list(orders)

    if report_type is ReportType.SALES:
        if filters.customer_type is not None:
            result = [
                o for o in result if customer_type_of(o, bulk_threshold) is filters.customer_type
            ]
        if filters.category:
            index = product_index(products)
            result = [o for o in result if order_has_category(o, index, filters.category)]

    elif report_type is ReportType.PAYMENT:
        if filters.payment_status is not None:
            wanted = filters.payment_status.value
            result = [o for o in result if (o.payment_status or "").lower() == wanted]

    elif report_type is ReportType.PRODUCT:
        if filters.category:
            index = product_index(products)
            result = [o for o in result if order_has_category(o, index, filters.category)]

    return result
