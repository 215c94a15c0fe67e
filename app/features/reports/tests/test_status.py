"""Tests for payment outcome classification."""

import pytest

from app.features.reports.schemas import PaymentOutcome, StatusChange
from app.features.reports.status import (
    cancellation_source,
    classify_order,
    classify_status,
    has_success_status,
    is_payment_method_success,
)


@pytest.fixture
def order_with(at, make_order):
    """Factory for a single-item order with the given status fields."""

    def build(**fields):
        return make_order("o1", at(1), [("p1", 100, 1)], **fields)

    return build


class TestClassifyStatus:
    """Tests for single status strings."""

    @pytest.mark.parametrize("value", ["delivered", "Completed", "PAID", "success", "successful"])
    def test_success_keywords(self, value):
        """Success keywords match case-insensitively."""
        assert classify_status(value) is PaymentOutcome.SUCCESS

    @pytest.mark.parametrize("value", ["cancelled", "canceled", "failed", "declined", "rejected"])
    def test_failure_keywords(self, value):
        """Both cancellation spellings count as failures."""
        assert classify_status(value) is PaymentOutcome.FAILED

    @pytest.mark.parametrize("value", [None, "", "processing", "confirmed", "out_for_delivery"])
    def test_other_values_not_decisive(self, value):
        """Anything else leaves the decision to the next status field."""
        assert classify_status(value) is None


class TestClassifyOrder:
    """Tests for whole-order classification."""

    def test_order_status_checked_first(self, order_with):
        """A decisive order status wins over the payment status."""
        order = order_with(order_status="cancelled", payment_status="paid")
        assert classify_order(order) is PaymentOutcome.FAILED

    def test_payment_status_used_when_order_status_undecided(self, order_with):
        """A non-decisive order status defers to the payment status."""
        order = order_with(order_status="processing", payment_status="paid")
        assert classify_order(order) is PaymentOutcome.SUCCESS

    def test_pending_when_nothing_decisive(self, order_with):
        """Orders with no decisive status are pending."""
        order = order_with(order_status="confirmed", payment_status="awaiting")
        assert classify_order(order) is PaymentOutcome.PENDING

    def test_pending_without_statuses(self, order_with):
        """Orders without any status are pending."""
        assert classify_order(order_with()) is PaymentOutcome.PENDING


class TestPaymentMethodSuccess:
    """Tests for per-method success counting."""

    def test_cash_without_method_counts_as_success(self, order_with):
        """A confirmed order with no payment method is a successful cash payment."""
        order = order_with(order_status="confirmed")
        assert order.method == "cash"
        assert classify_order(order) is PaymentOutcome.PENDING
        assert is_payment_method_success(order) is True

    @pytest.mark.parametrize("status", ["cancelled", "canceled", "Cancelled"])
    def test_cancelled_cash_is_not_success(self, order_with, status):
        """Cancelled cash orders are never collected."""
        order = order_with(payment_method="cash", order_status=status)
        assert is_payment_method_success(order) is False

    def test_card_needs_success_outcome(self, order_with):
        """Non-cash methods only succeed on a SUCCESS outcome."""
        pending = order_with(payment_method="card", order_status="processing")
        paid = order_with(payment_method="card", payment_status="paid")
        assert is_payment_method_success(pending) is False
        assert is_payment_method_success(paid) is True

    def test_paid_but_cancelled_card_is_success(self, order_with):
        """A success keyword in either status field counts for the method."""
        order = order_with(
            payment_method="card", payment_status="paid", order_status="cancelled"
        )
        assert classify_order(order) is PaymentOutcome.FAILED
        assert has_success_status(order) is True
        assert is_payment_method_success(order) is True

    def test_has_success_status(self, order_with):
        """Neither field a success keyword."""
        assert has_success_status(order_with(order_status="processing")) is False
        assert has_success_status(order_with(order_status="Delivered")) is True


class TestCancellationSource:
    """Tests for cancellation attribution."""

    def test_not_cancelled(self, order_with):
        """Orders that are not cancelled have no cancellation source."""
        assert cancellation_source(order_with(order_status="delivered")) is None

    def test_cancelled_by_customer(self, order_with):
        """The latest cancellation entry decides who cancelled."""
        order = order_with(
            order_status="cancelled",
            status_history=[
                StatusChange(status="pending", changed_by="customer"),
                StatusChange(status="cancelled", changed_by="customer"),
            ],
        )
        assert cancellation_source(order) == "customer"

    def test_cancelled_by_admin(self, order_with):
        """Any actor other than the customer is the admin."""
        order = order_with(
            order_status="canceled",
            status_history=[StatusChange(status="canceled", changed_by="ops@amacusi")],
        )
        assert cancellation_source(order) == "admin"

    def test_cancelled_without_history(self, order_with):
        """A cancelled order with no history is attributed to the admin."""
        assert cancellation_source(order_with(order_status="cancelled")) == "admin"
