"""API routes for reports, business metrics, drilldowns and exports.

Drilldowns, business metrics and exports work on the latest generated
report; requesting them before any report exists returns 409.
"""

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Path, Query, Response
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.features.documents import PRODUCTS, DocumentStore, get_document_store
from app.features.reports import drilldowns
from app.features.reports.fetchers import ReportDataFetcher, list_categories
from app.features.reports.schemas import (
    AcquisitionDrilldown,
    BusinessMetrics,
    CategoryDrilldown,
    CustomerDrilldown,
    CustomerType,
    CustomerTypeDrilldown,
    NewCustomersDrilldown,
    OrdersSummaryDrilldown,
    PaymentMethodDrilldown,
    PaymentOutcome,
    PaymentStatusDrilldown,
    PaymentTimeDrilldown,
    ProductDrilldown,
    ProductsSummaryDrilldown,
    ReportFilters,
    ReportResponse,
    ReportType,
    RevenueSummaryDrilldown,
    SalesDayDrilldown,
    SegmentDrilldown,
    TimeSlot,
    ValueSegment,
)
from app.features.reports.service import ReportService, get_report_service

logger = get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])

SEGMENT_KEYS: dict[str, ValueSegment] = {
    "high": ValueSegment.HIGH,
    "medium": ValueSegment.MEDIUM,
    "low": ValueSegment.LOW,
    "new-inactive": ValueSegment.NEW_INACTIVE,
}


# =============================================================================
# Catalog Helpers
# =============================================================================


@router.get(
    "/categories",
    response_model=list[str],
    summary="List product categories",
    description="Distinct product categories, in catalog order, for the category filter.",
)
async def get_categories(store: DocumentStore = Depends(get_document_store)) -> list[str]:
    """List product categories.

    A failed catalog fetch yields an empty list.
    """
    result = await ReportDataFetcher(store).fetch_products()
    if result.failed:
        logger.warning("reports.categories_unavailable", collection=PRODUCTS)
    return list_categories(result.records)


# =============================================================================
# Business Metrics
# =============================================================================


@router.get(
    "/business-metrics",
    response_model=BusinessMetrics,
    summary="Business metrics for the latest report",
    description="""
AOV trend, CLV projections, retention, profitability, category profitability,
seasonal trends and enriched customer segments over the latest report's
unfiltered orders.

All profitability and CLV figures are **estimates** derived from configured
placeholder ratios (COGS, operating expenses, margin), not measured cost data.
""",
)
async def get_business_metrics(
    service: ReportService = Depends(get_report_service),
) -> BusinessMetrics:
    """Compute business metrics for the latest report context."""
    return service.business_metrics()


# =============================================================================
# Drilldowns
# =============================================================================


@router.get("/drilldowns/sales/days/{day}", response_model=SalesDayDrilldown)
async def drill_sales_day(
    day: date = Path(..., description="Local calendar day, YYYY-MM-DD."),
    service: ReportService = Depends(get_report_service),
) -> SalesDayDrilldown:
    """One day of the sales trend."""
    return drilldowns.sales_day(service.require_context(), day)


@router.get("/drilldowns/sales/categories/{category}", response_model=CategoryDrilldown)
async def drill_category(
    category: str = Path(..., description="Product category (case-insensitive)."),
    service: ReportService = Depends(get_report_service),
) -> CategoryDrilldown:
    """One product category."""
    return drilldowns.category(service.require_context(), category)


@router.get(
    "/drilldowns/sales/customer-types/{customer_type}", response_model=CustomerTypeDrilldown
)
async def drill_customer_type(
    customer_type: CustomerType,
    service: ReportService = Depends(get_report_service),
) -> CustomerTypeDrilldown:
    """Bulk or regular customers."""
    return drilldowns.customer_type(service.require_context(), customer_type)


@router.get("/drilldowns/payment/methods/{method}", response_model=PaymentMethodDrilldown)
async def drill_payment_method(
    method: str = Path(..., description="Payment method, e.g. cash or card."),
    service: ReportService = Depends(get_report_service),
) -> PaymentMethodDrilldown:
    """One payment method."""
    return drilldowns.payment_method(service.require_context(), method)


@router.get("/drilldowns/payment/statuses/{outcome}", response_model=PaymentStatusDrilldown)
async def drill_payment_status(
    outcome: PaymentOutcome,
    service: ReportService = Depends(get_report_service),
) -> PaymentStatusDrilldown:
    """Orders with one classified payment outcome."""
    return drilldowns.payment_status(service.require_context(), outcome)


@router.get("/drilldowns/payment/time-slots/{slot}", response_model=PaymentTimeDrilldown)
async def drill_payment_time(
    slot: Literal["morning", "afternoon", "evening", "night"],
    service: ReportService = Depends(get_report_service),
) -> PaymentTimeDrilldown:
    """One time-of-day slot."""
    return drilldowns.payment_time(service.require_context(), TimeSlot[slot.upper()])


@router.get("/drilldowns/products/{product_id}", response_model=ProductDrilldown)
async def drill_product(
    product_id: str,
    service: ReportService = Depends(get_report_service),
) -> ProductDrilldown:
    """One catalog product."""
    return drilldowns.product(service.require_context(), product_id)


@router.get("/drilldowns/customers/{customer_id}", response_model=CustomerDrilldown)
async def drill_customer(
    customer_id: str,
    service: ReportService = Depends(get_report_service),
) -> CustomerDrilldown:
    """One customer's profile."""
    return drilldowns.customer(service.require_context(), customer_id)


@router.get("/drilldowns/acquisition/{month}", response_model=AcquisitionDrilldown)
async def drill_acquisition_month(
    month: str = Path(..., description="Signup month, YYYY-MM."),
    service: ReportService = Depends(get_report_service),
) -> AcquisitionDrilldown:
    """One signup cohort."""
    return drilldowns.acquisition_month(service.require_context(), month)


@router.get("/drilldowns/segments/{segment}", response_model=SegmentDrilldown)
async def drill_segment(
    segment: Literal["high", "medium", "low", "new-inactive"],
    service: ReportService = Depends(get_report_service),
) -> SegmentDrilldown:
    """One customer value segment."""
    return drilldowns.customer_segment(service.require_context(), SEGMENT_KEYS[segment])


@router.get("/drilldowns/summary/orders", response_model=OrdersSummaryDrilldown)
async def drill_orders_summary(
    service: ReportService = Depends(get_report_service),
) -> OrdersSummaryDrilldown:
    return drilldowns.orders_summary(service.require_context())


@router.get("/drilldowns/summary/revenue", response_model=RevenueSummaryDrilldown)
async def drill_revenue_summary(
    service: ReportService = Depends(get_report_service),
) -> RevenueSummaryDrilldown:
    return drilldowns.revenue_summary(service.require_context())


@router.get("/drilldowns/summary/products", response_model=ProductsSummaryDrilldown)
async def drill_products_summary(
    service: ReportService = Depends(get_report_service),
) -> ProductsSummaryDrilldown:
    return drilldowns.products_summary(service.require_context())


@router.get("/drilldowns/summary/new-customers", response_model=NewCustomersDrilldown)
async def drill_new_customers(
    service: ReportService = Depends(get_report_service),
) -> NewCustomersDrilldown:
    return drilldowns.new_customers(service.require_context())


# =============================================================================
# Reports
# =============================================================================


@router.get(
    "/{report_type}",
    response_model=ReportResponse,
    summary="Generate a report",
    description="""
Generate a sales, payment, product or customer report for a date range.

**Date Range**:
- Both dates are inclusive local calendar days
- Defaults to the last 30 days ending today
- A start date after the end date is rejected before any data is read

**Filters** (use `all` or omit for no filter):
- `sales`: `customer_type` (bulk/regular) and `category`
- `payment`: `payment_status` (paid/pending/failed)
- `product`: `category`
- `customer`: none

**Failures**: a collection that cannot be read is treated as empty; the
response lists it under `fetch_errors` and explains it in `notices`.
""",
)
async def get_report(
    report_type: ReportType,
    start_date: date | None = Query(None, description="Start of period (inclusive), YYYY-MM-DD."),
    end_date: date | None = Query(None, description="End of period (inclusive), YYYY-MM-DD."),
    category: str | None = Query(None, description="Product category, or 'all'."),
    customer_type: str | None = Query(None, description="bulk, regular, or 'all'."),
    payment_status: str | None = Query(None, description="paid, pending, failed, or 'all'."),
    store: DocumentStore = Depends(get_document_store),
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    """Generate a report of the given type."""
    try:
        filters = ReportFilters.model_validate(
            {
                "category": category,
                "customer_type": customer_type,
                "payment_status": payment_status,
            }
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid report filter",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e
    return await service.generate(
        store,
        report_type,
        start_date=start_date,
        end_date=end_date,
        filters=filters,
    )


@router.get(
    "/{report_type}/export",
    summary="Export the latest report as PDF",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
async def export_report(
    report_type: ReportType,
    service: ReportService = Depends(get_report_service),
) -> Response:
    """Render the latest report of ``report_type`` as a PDF download."""
    filename, content = service.export(report_type)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

