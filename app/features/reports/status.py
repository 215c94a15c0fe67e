"""Payment outcome classification.

One classifier serves the summary, the payment report and the payment-status
drilldown, so the three can never disagree about what counts as a success.
"""

from app.features.reports.schemas import Order, PaymentOutcome

SUCCESS_KEYWORDS = frozenset({"delivered", "completed", "paid", "success", "successful"})
FAILURE_KEYWORDS = frozenset({"cancelled", "canceled", "failed", "declined", "rejected"})

CANCELLED_STATUSES = frozenset({"cancelled", "canceled"})


def classify_status(value: str | None) -> PaymentOutcome | None:
    """Classify a single status string, or None when it is not decisive."""
    if not value:
        return None
    normalized = value.strip().lower()
    if normalized in SUCCESS_KEYWORDS:
        return PaymentOutcome.SUCCESS
    if normalized in FAILURE_KEYWORDS:
        return PaymentOutcome.FAILED
    return None


def classify_order(order: Order) -> PaymentOutcome:
    """Classify an order's payment outcome.

    ``order_status`` is checked first, then ``payment_status``. The first
    decisive keyword wins; an order with no decisive status is PENDING.
    """
    for value in (order.order_status, order.payment_status):
        outcome = classify_status(value)
        if outcome is not None:
            return outcome
    return PaymentOutcome.PENDING


def has_success_status(order: Order) -> bool:
    """Whether the order status or the payment status is a success keyword."""
    return any(
        classify_status(value) is PaymentOutcome.SUCCESS
        for value in (order.order_status, order.payment_status)
    )


def is_payment_method_success(order: Order, method: str | None = None) -> bool:
    """Whether an order counts as a success for its payment method.

    Any success status counts, even when the other field failed: a paid but
    cancelled card order was still collected. Cash is collected on delivery,
    so a cash order also succeeds unless its order status is cancelled.
    """
    if has_success_status(order):
        return True
    if (method or order.method) == "cash":
        return (order.order_status or "").strip().lower() not in CANCELLED_STATUSES
    return False


def cancellation_source(order: Order) -> str | None:
    """Who cancelled the order: "customer", "admin", or None if not cancelled.

    Uses the latest cancellation entry of the status history. A cancelled
    order without history is attributed to the admin.
    """
    if (order.order_status or "").lower() not in CANCELLED_STATUSES:
        return None
    for change in reversed(order.status_history):
        if change.status.lower() in CANCELLED_STATUSES:
            return "customer" if (change.changed_by or "").lower() == "customer" else "admin"
    return "admin"
