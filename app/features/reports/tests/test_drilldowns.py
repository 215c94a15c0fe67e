"""Tests for drilldowns over a report context."""

from datetime import date

import pytest

from app.core.exceptions import BadRequestError, NotFoundError
from app.features.reports import calculations as calc
from app.features.reports import drilldowns
from app.features.reports.schemas import (
    CustomerType,
    PaymentOutcome,
    Product,
    StatusChange,
    TimeSlot,
    ValueSegment,
)


class TestSalesDay:
    """Tests for the sales-day drilldown."""

    def test_day_against_previous(self, context):
        """Revenue and order changes compare with the previous day."""
        result = drilldowns.sales_day(context, date(2024, 5, 2))
        assert result.order_ids == ["o3"]
        assert result.revenue == pytest.approx(960.0)
        # (960 - 150) / 150
        assert result.revenue_trend_pct == pytest.approx(540.0)
        assert result.order_trend_pct == pytest.approx(-50.0)
        assert result.previous_day is not None
        assert result.previous_day.count == 2

    def test_first_day_has_no_previous(self, context):
        """Without orders the day before, the change is 0."""
        result = drilldowns.sales_day(context, date(2024, 5, 1))
        assert result.previous_day is None
        assert result.revenue_trend_pct == 0
        assert result.customer_ids == ["c1", "c2"]

    def test_matches_trend_bucket(self, context):
        """The drilldown selects exactly the orders of the trend point."""
        point = calc.sales_trend(context.filtered_orders, context.tz)[0]
        result = drilldowns.sales_day(context, point.date)
        assert result.order_ids == point.order_ids
        assert result.revenue == pytest.approx(point.total)

    def test_unknown_day(self, context):
        """A day without sales is not found."""
        with pytest.raises(NotFoundError):
            drilldowns.sales_day(context, date(2024, 5, 20))


class TestCategory:
    """Tests for the category drilldown."""

    def test_category(self, context):
        """Products, revenue share and estimated profit of one category."""
        result = drilldowns.category(context, "Poultry")
        assert result.category == "Poultry"
        assert result.order_ids == ["o3", "o4"]
        assert result.total_revenue == pytest.approx(1160.0)
        assert result.revenue_percentage == pytest.approx(1160.0 / 1360.0 * 100)
        assert result.estimated_profit == pytest.approx(464.0)
        assert [p.product_id for p in result.products] == ["p2", "p3"]
        assert sum(p.percentage for p in result.products) == pytest.approx(100.0)
        assert result.customer_ids == ["c1", "c3"]

    def test_matches_category_bucket(self, context):
        """Drilldown revenue equals the category breakdown total."""
        buckets = {
            c.raw_category: c
            for c in calc.sales_by_category(context.filtered_orders, context.products)
        }
        result = drilldowns.category(context, "beef")
        assert result.total_revenue == pytest.approx(buckets["beef"].total)
        assert result.order_ids == buckets["beef"].order_ids

    def test_mixed_case_matches_bucket(self, make_context, make_order, at, customers):
        """Drilldown and breakdown agree when the catalog mixes spellings."""
        products = [Product(id="p1", category="beef"), Product(id="p2", category="Beef")]
        orders = [
            make_order("o1", at(1), [("p1", 100, 1)]),
            make_order("o2", at(2), [("p2", 40, 1)]),
        ]
        ctx = make_context(orders, products, customers)
        (bucket,) = calc.sales_by_category(ctx.filtered_orders, ctx.products)
        result = drilldowns.category(ctx, bucket.raw_category)
        assert result.total_revenue == pytest.approx(bucket.total)
        assert result.order_ids == bucket.order_ids
        assert drilldowns.revenue_summary(ctx).revenue_by_category == {"Beef": 140.0}

    def test_category_without_sales(self, context):
        """A catalog category with nothing sold is not found."""
        with pytest.raises(NotFoundError):
            drilldowns.category(context, "lamb")


class TestCustomerType:
    """Tests for the customer-type drilldown."""

    def test_average_units_per_customer(self, context):
        """Customers are classified by their average units per order."""
        regular = drilldowns.customer_type(context, CustomerType.REGULAR)
        bulk = drilldowns.customer_type(context, CustomerType.BULK)
        # c1 averages (1 + 12) / 2 = 6.5 units
        assert regular.customer_ids == ["c1", "c2", "c3"]
        assert regular.order_count == 4
        assert regular.revenue_percentage == pytest.approx(100.0)
        assert bulk.customer_count == 0
        assert bulk.avg_order_value == 0

    def test_bulk_customer(self, make_context, at, make_order, products, customers):
        """A customer averaging more than the threshold is bulk."""
        orders = [make_order("o1", at(1), [("p2", 80, 11)], customer_id="c2")]
        ctx = make_context(orders, products, customers)
        result = drilldowns.customer_type(ctx, CustomerType.BULK)
        assert result.customer_ids == ["c2"]
        assert result.definition == "Average of more than 10 units per order"


class TestPaymentDrilldowns:
    """Tests for payment drilldowns."""

    def test_method(self, context):
        """Card transactions, successes and revenue."""
        result = drilldowns.payment_method(context, "Card")
        assert result.method == "card"
        assert result.transaction_count == 2
        assert result.success_count == 1
        assert result.success_rate == pytest.approx(50.0)
        assert result.total_revenue == pytest.approx(350.0)
        assert result.avg_transaction == pytest.approx(175.0)

    def test_cash_default(self, context):
        """Orders without a method drill down as cash."""
        result = drilldowns.payment_method(context, "cash")
        assert result.order_ids == ["o2"]
        assert result.success_count == 1

    def test_unknown_method(self, context):
        """A method nobody used is not found."""
        with pytest.raises(NotFoundError):
            drilldowns.payment_method(context, "bitcoin")

    def test_status_matches_overview(self, context):
        """Each outcome drilldown lists the same orders as the overview."""
        overview = calc.payment_success(context.filtered_orders)
        expected = {
            PaymentOutcome.SUCCESS: overview.success_order_ids,
            PaymentOutcome.FAILED: overview.failed_order_ids,
            PaymentOutcome.PENDING: overview.pending_order_ids,
        }
        for outcome, order_ids in expected.items():
            assert drilldowns.payment_status(context, outcome).order_ids == order_ids

    def test_failed_with_cancellation_sources(
        self, at, make_order, make_context, products, customers
    ):
        """Cancelled orders are attributed to customer or admin."""
        orders = [
            make_order(
                "o1",
                at(1),
                [("p1", 100, 1)],
                order_status="cancelled",
                status_history=[StatusChange(status="cancelled", changed_by="customer")],
            ),
            make_order("o2", at(2), [("p1", 100, 1)], order_status="cancelled"),
            make_order("o3", at(3), [("p1", 100, 1)], payment_status="declined"),
        ]
        result = drilldowns.payment_status(
            make_context(orders, products, customers), PaymentOutcome.FAILED
        )
        assert result.count == 3
        assert result.cancelled_by_customer == 1
        assert result.cancelled_by_admin == 1
        assert result.customers[0].customer_id == "c1"
        assert result.customers[0].order_count == 3

    def test_time_slot(self, context):
        """Night orders only."""
        result = drilldowns.payment_time(context, TimeSlot.NIGHT)
        assert result.order_ids == ["o4"]
        assert result.total_revenue == pytest.approx(250.0)
        assert result.avg_order_value == pytest.approx(250.0)


class TestProduct:
    """Tests for the product drilldown."""

    def test_product(self, context):
        """Units, revenue, conversion estimate and stock coverage."""
        result = drilldowns.product(context, "p1")
        assert result.units_sold == 2
        assert result.total_revenue == pytest.approx(150.0)
        assert result.avg_price == pytest.approx(75.0)
        assert result.conversion_rate == pytest.approx(5.0)
        # (2 units / 30 days) / 20 in stock
        assert result.stock_coverage == pytest.approx(2 / 30 / 20 * 100)
        assert result.customer_ids == ["c1", "c2"]

    def test_out_of_stock(self, context):
        """No stock gives zero coverage."""
        assert drilldowns.product(context, "p3").stock_coverage == 0

    def test_unsold_product(self, context):
        """A catalog product without sales uses the default view estimate."""
        result = drilldowns.product(context, "p4")
        assert result.units_sold == 0
        assert result.conversion_rate == 0
        assert result.order_ids == []

    def test_unknown_product(self, context):
        """Products missing from the catalog are not found."""
        with pytest.raises(NotFoundError):
            drilldowns.product(context, "gone")


class TestCustomer:
    """Tests for the customer drilldown."""

    def test_customer(self, context, at):
        """History, spend and purchase frequency of one customer."""
        result = drilldowns.customer(context, "c1")
        assert result.name == "Thandi Nkosi"
        assert result.order_ids == ["o1", "o3"]
        assert result.total_spent == pytest.approx(1060.0)
        assert result.first_purchase == at(1, 9)
        assert result.last_purchase == at(2, 19)
        assert result.days_since_last_purchase == 28
        # Purchases span less than 30 days, counted as one period
        assert result.purchase_frequency == pytest.approx(2.0)
        assert result.signup_date == at(2, 9, month=4)

    def test_customer_without_orders(self, context):
        """Catalog customers without orders still drill down."""
        result = drilldowns.customer(context, "c4")
        assert result.name == "No Signup"
        assert result.total_orders == 0
        assert result.purchase_frequency == 0
        assert result.days_since_last_purchase is None

    def test_unknown_customer(self, context):
        """Unknown ids are not found."""
        with pytest.raises(NotFoundError):
            drilldowns.customer(context, "ghost")

    def test_spend_matches_lifetime_row(self, make_context, make_order, at, products, customers):
        """Orders without a stored total count as 0 in both views."""
        order = make_order("o9", at(5), [("p1", 100, 2)], total=0)
        ctx = make_context([order], products, customers)

        row = next(
            c
            for c in calc.customer_lifetime([order], customers, ctx.now, ctx.heuristics)
            if c.customer_id == "c1"
        )
        result = drilldowns.customer(ctx, "c1")

        assert row.total_spent == 0.0
        assert result.total_spent == pytest.approx(row.total_spent)
        assert result.avg_order_value == 0.0


class TestAcquisitionMonth:
    """Tests for the acquisition drilldown."""

    def test_month(self, context):
        """Signups of the month and how many went on to order."""
        result = drilldowns.acquisition_month(context, "2024-05")
        assert result.period_start == date(2024, 5, 1)
        assert result.period_end == date(2024, 5, 31)
        assert result.customer_ids == ["c2", "c3"]
        assert result.activated_customers == 2
        assert result.activation_rate == pytest.approx(100.0)

    def test_empty_month(self, context):
        """A month without signups has a zero activation rate."""
        result = drilldowns.acquisition_month(context, "2023-02")
        assert result.new_customers == 0
        assert result.activation_rate == 0
        assert result.period_end == date(2023, 2, 28)

    @pytest.mark.parametrize("month", ["2024-13", "May", "2024-5", "2024-00"])
    def test_invalid_month(self, context, month):
        """Malformed months are rejected."""
        with pytest.raises(BadRequestError):
            drilldowns.acquisition_month(context, month)


class TestCustomerSegment:
    """Tests for the segment drilldown."""

    def test_low_value(self, context):
        """Members, revenue and recency of one segment."""
        result = drilldowns.customer_segment(context, ValueSegment.LOW)
        assert result.customer_count == 2
        assert [c.customer_id for c in result.customers] == ["c3", "c2"]
        assert result.total_revenue == pytest.approx(300.0)
        assert result.avg_purchase_frequency == pytest.approx(1.0)
        assert result.avg_days_since_last_purchase is not None

    def test_new_inactive(self, context):
        """Customers without orders are listed with zero spend."""
        result = drilldowns.customer_segment(context, ValueSegment.NEW_INACTIVE)
        assert [c.customer_id for c in result.customers] == ["c4"]
        assert result.customers[0].total_amount == 0
        assert result.avg_days_since_last_purchase is None

    def test_counts_match_segments(self, context):
        """Drilldown membership equals the segment calculation."""
        segments = calc.customer_segments(
            calc.customer_spend(context.filtered_orders, context.customers), context.heuristics
        )
        for segment in segments:
            result = drilldowns.customer_segment(context, segment.segment)
            assert result.customer_count == segment.count


class TestSummaryDrilldowns:
    """Tests for the summary-card drilldowns."""

    def test_orders(self, context):
        """Averages over active days; every order falls in the first half."""
        result = drilldowns.orders_summary(context)
        assert result.total_orders == 4
        assert result.avg_daily_orders == pytest.approx(4 / 3)
        assert result.order_trend_pct == pytest.approx(-100.0)
        assert result.peak_order_day == "Wednesday"  # 1 May 2024

    def test_orders_trend_between_halves(
        self, at, make_order, make_context, products, customers
    ):
        """Second-half orders against first-half orders."""
        orders = [
            make_order("o1", at(2), [("p1", 10, 1)]),
            make_order("o2", at(20), [("p1", 10, 1)]),
            make_order("o3", at(25), [("p1", 10, 1)]),
        ]
        result = drilldowns.orders_summary(make_context(orders, products, customers))
        assert result.order_trend_pct == pytest.approx(100.0)

    def test_revenue(self, context):
        """Revenue per category and per active day."""
        result = drilldowns.revenue_summary(context)
        assert result.total_revenue == pytest.approx(1360.0)
        assert result.avg_daily_revenue == pytest.approx(1360.0 / 3)
        assert list(result.revenue_by_category) == ["Poultry", "Beef"]

    def test_products(self, context):
        """Units, units per order, top five and inventory turnover."""
        result = drilldowns.products_summary(context)
        assert result.total_units == 24
        assert result.avg_products_per_order == pytest.approx(6.0)
        assert len(result.top_products) == 3
        # 1360 / (60 * 20 + 50 * 10)
        assert result.inventory_turnover == pytest.approx(0.8)

    def test_products_without_cost(self, orders, customers, make_context):
        """Inventory turnover is unknown without cost data."""
        products = [Product(id="p1", category="beef", stock=5)]
        result = drilldowns.products_summary(make_context(orders, products, customers))
        assert result.inventory_turnover is None

    def test_new_customers(self, context):
        """Signups or first orders inside the range."""
        result = drilldowns.new_customers(context)
        assert [c.customer_id for c in result.customers] == ["c1", "c2", "c3"]
        assert result.total_new_customers == 3
        assert all(c.status == "Active" for c in result.customers)

    def test_empty_context(self, make_context, products, customers):
        """Summaries over no orders are all zero."""
        ctx = make_context([], products, customers)
        assert drilldowns.orders_summary(ctx).avg_daily_orders == 0
        assert drilldowns.revenue_summary(ctx).revenue_trend_pct == 0
        assert drilldowns.products_summary(ctx).top_products == []
