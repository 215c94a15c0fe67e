"""Tests for record validation and legacy field handling."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from app.features.reports.schemas import (
    CustomerType,
    Order,
    OrderItem,
    PaymentMethodStats,
    Product,
    ReportFilters,
)


class TestOrderLegacyFields:
    """Tests for Order's canonical field resolution."""

    def test_user_id_used_when_customer_id_missing(self):
        """Legacy userId fills customer_id."""
        order = Order.model_validate(
            {"id": "o1", "createdAt": datetime(2024, 5, 1, tzinfo=UTC), "userId": "u1"}
        )
        assert order.customer_id == "u1"

    def test_customer_id_wins_over_user_id(self):
        """customerId takes precedence when both are present."""
        order = Order.model_validate(
            {
                "id": "o1",
                "createdAt": datetime(2024, 5, 1, tzinfo=UTC),
                "customerId": "c1",
                "userId": "u1",
            }
        )
        assert order.customer_id == "c1"

    def test_status_used_when_order_status_missing(self):
        """Legacy status fills order_status."""
        order = Order.model_validate(
            {"id": "o1", "createdAt": datetime(2024, 5, 1, tzinfo=UTC), "status": "delivered"}
        )
        assert order.order_status == "delivered"

    def test_order_status_wins_over_status(self):
        """orderStatus takes precedence over the legacy status."""
        order = Order.model_validate(
            {
                "id": "o1",
                "createdAt": datetime(2024, 5, 1, tzinfo=UTC),
                "orderStatus": "cancelled",
                "status": "delivered",
            }
        )
        assert order.order_status == "cancelled"

    def test_user_name_and_email_fill_customer_fields(self):
        """userName and userEmail are read as the captured customer details."""
        order = Order.model_validate(
            {
                "id": "o1",
                "createdAt": datetime(2024, 5, 1, tzinfo=UTC),
                "userName": "Thandi",
                "userEmail": "thandi@example.com",
            }
        )
        assert order.customer_name == "Thandi"
        assert order.customer_email == "thandi@example.com"


class TestOrderDefaults:
    """Tests for missing and null values on orders."""

    def test_null_numbers_become_zero(self):
        """Null totals and null item numbers count as 0."""
        order = Order.model_validate(
            {
                "id": "o1",
                "createdAt": datetime(2024, 5, 1, tzinfo=UTC),
                "total": None,
                "deliveryFee": None,
                "items": [{"id": "p1", "price": None, "quantity": None}],
            }
        )
        assert order.total == 0
        assert order.delivery_fee == 0
        assert order.items[0].line_total == 0

    def test_null_items_become_empty(self):
        """A null items list is an empty list."""
        order = Order.model_validate(
            {"id": "o1", "createdAt": datetime(2024, 5, 1, tzinfo=UTC), "items": None}
        )
        assert order.items == []
        assert order.total_quantity == 0

    def test_method_defaults_to_cash(self):
        """Orders without a payment method are cash orders."""
        order = Order(id="o1", created_at=datetime(2024, 5, 1, tzinfo=UTC))
        assert order.method == "cash"

    def test_method_is_lower_cased(self):
        """Payment methods compare case-insensitively."""
        order = Order(id="o1", created_at=datetime(2024, 5, 1, tzinfo=UTC), payment_method="Card")
        assert order.method == "card"

    def test_missing_id_is_rejected(self):
        """An order without an id cannot be read."""
        with pytest.raises(ValidationError):
            Order.model_validate({"createdAt": datetime(2024, 5, 1, tzinfo=UTC)})


class TestOrderItem:
    """Tests for line-item product references."""

    @pytest.mark.parametrize("key", ["id", "productId", "product_id"])
    def test_product_reference_aliases(self, key):
        """Every stored spelling of the product reference is accepted."""
        item = OrderItem.model_validate({key: "p1", "price": 10, "quantity": 2})
        assert item.product_id == "p1"
        assert item.line_total == 20

    def test_numeric_ids_compared_as_strings(self):
        """Numeric product references are stringified."""
        item = OrderItem.model_validate({"id": 42, "price": 1, "quantity": 1})
        assert item.product_id == "42"


class TestProduct:
    """Tests for product defaults."""

    def test_null_text_fields_use_defaults(self):
        """Null name, category and status fall back to their defaults."""
        product = Product.model_validate(
            {"id": "p1", "name": None, "category": None, "status": None, "stock": None}
        )
        assert product.name == "Unknown"
        assert product.category == ""
        assert product.status == "active"
        assert product.stock == 0
        assert product.cost is None


class TestReportFilters:
    """Tests for filter normalization."""

    @pytest.mark.parametrize("value", ["all", "ALL", "", "  "])
    def test_all_and_blank_mean_no_filter(self, value):
        """'all' and blank selections disable a filter."""
        filters = ReportFilters(category=value, customer_type=value, payment_status=value)
        assert filters.category is None
        assert filters.customer_type is None
        assert filters.payment_status is None

    def test_customer_type_parsed(self):
        """Customer type values map to the enum."""
        assert ReportFilters(customer_type="bulk").customer_type is CustomerType.BULK

    def test_unknown_payment_status_rejected(self):
        """Payment status filters outside paid/pending/failed are invalid."""
        with pytest.raises(ValidationError):
            ReportFilters(payment_status="refunded")


class TestPaymentMethodStats:
    """Tests for the derived success rate."""

    def test_success_rate(self):
        """Success rate is successes over transactions, as a percentage."""
        stats = PaymentMethodStats(method="card", count=4, success=3)
        assert stats.success_rate == pytest.approx(75.0)

    def test_success_rate_without_transactions(self):
        """No transactions means a 0% success rate, not a division error."""
        assert PaymentMethodStats(method="card").success_rate == 0.0
