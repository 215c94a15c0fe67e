"""Service layer for report generation.

Flow of one generation: validate the date range, take a generation token,
fetch a snapshot, drop the result if a newer generation started meanwhile,
filter, calculate the sections of the requested report type, then cache the
snapshot as the latest report context.
"""

from datetime import date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.core.config import get_settings
from app.core.exceptions import InvalidDateRangeError, NoReportContextError
from app.core.logging import get_logger, report_generation_ctx
from app.features.documents import DocumentStore
from app.features.reports import calculations as calc
from app.features.reports.business_metrics import category_profitability, compute_business_metrics
from app.features.reports.context import GenerationCounter, ReportCache, ReportContext
from app.features.reports.exports import build_export, export_filename, render_pdf
from app.features.reports.fetchers import ReportDataFetcher
from app.features.reports.filters import apply_filters
from app.features.reports.schemas import (
    BusinessMetrics,
    CustomerReport,
    PaymentReport,
    ProductReport,
    ReportFilters,
    ReportResponse,
    ReportType,
    SalesReport,
)

logger = get_logger(__name__)


def resolve_date_range(
    start_date: date | None,
    end_date: date | None,
    tz: ZoneInfo,
    today: date,
    default_days: int = 30,
    max_days: int = 730,
) -> tuple[datetime, datetime]:
    """Turn calendar dates into an inclusive local range.

    The start becomes local midnight and the end the last microsecond of its
    day. Missing dates default to the last ``default_days`` days ending today.

    Raises:
        InvalidDateRangeError: If the start is after the end, or the range is
            longer than ``max_days``.
    """
    end_day = end_date or today
    start_day = start_date or (end_day - timedelta(days=default_days))

    if start_day > end_day:
        raise InvalidDateRangeError(
            details={"start_date": start_day.isoformat(), "end_date": end_day.isoformat()}
        )
    if (end_day - start_day).days > max_days:
        raise InvalidDateRangeError(
            f"Date range cannot exceed {max_days} days",
            details={"start_date": start_day.isoformat(), "end_date": end_day.isoformat()},
        )

    start = datetime.combine(start_day, time.min, tzinfo=tz)
    end = datetime.combine(end_day, time.max, tzinfo=tz)
    return start, end


def build_sections(ctx: ReportContext) -> dict[str, object]:
    """Calculate the sections of the context's report type."""
    h = ctx.heuristics
    orders = list(ctx.filtered_orders)
    products = list(ctx.products)

    if ctx.report_type is ReportType.SALES:
        return {
            "sales": SalesReport(
                trend=calc.sales_trend(orders, ctx.tz),
                categories=calc.sales_by_category(orders, products),
                customer_types=calc.customer_type_breakdown(orders, h.bulk_quantity_threshold),
                top_products=calc.top_products(orders, products, ctx.top_products_limit),
            )
        }
    if ctx.report_type is ReportType.PAYMENT:
        return {
            "payment": PaymentReport(
                methods=calc.payment_methods(orders),
                success=calc.payment_success(orders),
                by_time=calc.payment_by_time(orders, ctx.tz),
            )
        }
    if ctx.report_type is ReportType.PRODUCT:
        return {
            "product": ProductReport(
                performance=calc.product_performance(orders, products, h),
                top_products=calc.top_products(orders, products, ctx.top_products_limit),
                category_profitability=category_profitability(orders, products, h),
            )
        }
    customers = list(ctx.customers)
    return {
        "customer": CustomerReport(
            customers=calc.customer_lifetime(orders, customers, ctx.now, h),
            segments=calc.customer_segments(
                calc.customer_spend(orders, customers), h, ctx.currency_symbol
            ),
            acquisition=calc.customer_acquisition(customers, ctx.tz),
            category_spending=calc.category_spending(orders, products, h),
        )
    }


class ReportService:
    """Generates reports and keeps the latest report context.

    One instance is shared per process; its generation counter decides which
    of several overlapping generations gets cached.
    """

    def __init__(self) -> None:
        """Initialize report service."""
        self.settings = get_settings()
        self.tz = ZoneInfo(self.settings.report_timezone)
        self.generations = GenerationCounter()
        self.cache = ReportCache()

    def now(self) -> datetime:
        """Current time in the report time zone."""
        return datetime.now(self.tz)

    async def generate(
        self,
        store: DocumentStore,
        report_type: ReportType,
        start_date: date | None = None,
        end_date: date | None = None,
        filters: ReportFilters | None = None,
    ) -> ReportResponse:
        """Generate a report.

        Args:
            store: Document store to read from.
            report_type: Report family to generate.
            start_date: First day of the range (inclusive).
            end_date: Last day of the range (inclusive).
            filters: Filter selections; unset filters are no-ops.

        Returns:
            The report. ``stale`` is True when a newer generation was issued
            while this one was fetching; a stale report carries only its
            summary and is not cached.

        Raises:
            InvalidDateRangeError: If the range is invalid. Nothing is fetched.
        """
        filters = filters or ReportFilters()
        now = self.now()
        start, end = resolve_date_range(
            start_date,
            end_date,
            self.tz,
            now.date(),
            self.settings.report_default_range_days,
            self.settings.report_max_range_days,
        )

        token = self.generations.issue()
        report_generation_ctx.set(token)
        logger.info(
            "reports.generation_started",
            report_type=report_type.value,
            start=start.isoformat(),
            end=end.isoformat(),
            generation=token,
        )

        snapshot = await ReportDataFetcher(store, self.tz).fetch_snapshot(start, end)

        heuristics = self.settings.heuristics()
        filtered = apply_filters(
            snapshot.orders,
            snapshot.products,
            report_type,
            filters,
            bulk_threshold=heuristics.bulk_quantity_threshold,
        )
        response_base = {
            "report_type": report_type,
            "start_date": start.date(),
            "end_date": end.date(),
            "generation": token,
            "filters": filters,
            "summary": calc.summary_cards(filtered),
            "notices": snapshot.notices,
            "fetch_errors": snapshot.fetch_errors,
        }

        if not self.generations.is_latest(token):
            logger.warning(
                "reports.stale_discarded",
                generation=token,
                latest=self.generations.latest,
                report_type=report_type.value,
            )
            return ReportResponse(**response_base, stale=True)

        ctx = ReportContext(
            report_type=report_type,
            start=start,
            end=end,
            orders=tuple(snapshot.orders),
            filtered_orders=tuple(filtered),
            products=tuple(snapshot.products),
            customers=tuple(snapshot.customers),
            filters=filters,
            generation=token,
            now=now,
            tz=self.tz,
            heuristics=heuristics,
            currency_symbol=self.settings.report_currency_symbol,
            top_products_limit=self.settings.report_top_products_limit,
        )
        response = ReportResponse(**response_base, **build_sections(ctx))
        self.cache.store(ctx, response)

        logger.info(
            "reports.generated",
            report_type=report_type.value,
            generation=token,
            orders=len(snapshot.orders),
            filtered_orders=len(filtered),
            products=len(snapshot.products),
            customers=len(snapshot.customers),
            fetch_errors=snapshot.fetch_errors,
        )
        return response

    def require_context(self, report_type: ReportType | None = None) -> ReportContext:
        """Latest report context, optionally of a specific report type.

        Raises:
            NoReportContextError: If no report (of that type) was generated yet.
        """
        ctx = self.cache.context
        if ctx is None:
            raise NoReportContextError()
        if report_type is not None and ctx.report_type is not report_type:
            raise NoReportContextError(
                f"The latest report is a {ctx.report_type.value} report; "
                f"generate a {report_type.value} report first",
                details={"latest": ctx.report_type.value, "requested": report_type.value},
            )
        return ctx

    def business_metrics(self) -> BusinessMetrics:
        """Business metrics over the latest report context."""
        return compute_business_metrics(self.require_context())

    def export(self, report_type: ReportType) -> tuple[str, bytes]:
        """Render the latest report of ``report_type`` as a PDF.

        Returns:
            Tuple of (file name, PDF bytes).
        """
        ctx = self.require_context(report_type)
        response = self.cache.response
        if response is None:
            raise NoReportContextError()
        content = render_pdf(build_export(ctx, response))
        filename = export_filename(self.settings.export_file_prefix, report_type, ctx.now.date())
        return filename, content


@lru_cache
def get_report_service() -> ReportService:
    """Process-wide report service."""
    return ReportService()
