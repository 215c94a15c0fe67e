"""Tests for PDF exports."""

from datetime import date

import pytest

from app.features.reports import calculations as calc
from app.features.reports.exports import (
    BRAND_NAME,
    ExportDocument,
    ExportTable,
    build_export,
    export_filename,
    render_pdf,
)
from app.features.reports.schemas import ReportResponse, ReportType
from app.features.reports.service import build_sections


def _report(ctx, notices=None) -> ReportResponse:
    return ReportResponse(
        report_type=ctx.report_type,
        start_date=ctx.start_date,
        end_date=ctx.end_date,
        generation=ctx.generation,
        filters=ctx.filters,
        summary=calc.summary_cards(ctx.filtered_orders),
        notices=notices or [],
        **build_sections(ctx),
    )


class TestExportFilename:
    """Tests for export file names."""

    def test_filename(self):
        """Prefix, report type and ISO date."""
        name = export_filename("amacusi", ReportType.PAYMENT, date(2024, 5, 1))
        assert name == "amacusi-payment-report-2024-05-01.pdf"


class TestBuildExport:
    """Tests for laying out reports as tables."""

    def test_summary_rows(self, context):
        """The executive summary carries formatted headline figures."""
        document = build_export(context, _report(context))
        summary = dict(document.summary_rows)
        assert summary["Total Orders"] == "4"
        assert summary["Total Revenue"] == "R1,360.00"
        assert summary["Average Order Value"] == "R340.00"
        assert summary["Date Range"] == "2024-05-01 to 2024-05-31"
        assert document.title == f"{BRAND_NAME.upper()} - SALES REPORT"

    @pytest.mark.parametrize(
        ("report_type", "titles"),
        [
            (
                ReportType.SALES,
                [
                    "Sales Trends Analysis",
                    "Top Performing Products",
                    "Category Performance",
                    "Customer Insights",
                ],
            ),
            (
                ReportType.PAYMENT,
                ["Payment Methods", "Payment Success Overview", "Orders by Time of Day"],
            ),
            (ReportType.PRODUCT, ["Product Performance", "Category Profitability"]),
            (
                ReportType.CUSTOMER,
                [
                    "Customer Lifetime Value",
                    "Customer Value Segments",
                    "Customer Acquisition",
                    "Category Spending",
                ],
            ),
        ],
    )
    def test_tables_per_report_type(
        self, orders, products, customers, make_context, report_type, titles
    ):
        """Each report type exports its own sections."""
        ctx = make_context(orders, products, customers, report_type=report_type)
        document = build_export(ctx, _report(ctx))
        assert [t.title for t in document.tables] == titles

    def test_rows_are_formatted(self, context):
        """Table cells are display strings."""
        document = build_export(context, _report(context))
        trend = document.tables[0]
        assert trend.rows[0] == ["2024-05-01", "2", "R150.00", "2"]

    def test_notices_carried(self, context):
        """Fetch notices appear in the export."""
        document = build_export(
            context, _report(context, notices=["Failed to fetch customers data"])
        )
        assert document.notices == ["Failed to fetch customers data"]


class TestRenderPdf:
    """Tests for PDF rendering."""

    def test_renders_pdf(self, context):
        """A full report renders to PDF bytes."""
        content = render_pdf(build_export(context, _report(context)))
        assert content.startswith(b"%PDF")

    def test_empty_tables(self, context):
        """Tables without rows render a placeholder instead of failing."""
        document = ExportDocument(
            title="EMPTY",
            period="2024-05-01 to 2024-05-31",
            generated_at=context.now,
            summary_rows=[["Total Orders", "0"]],
            tables=[ExportTable(title="Nothing", headers=["A", "B"], rows=[])],
            notices=["Failed to fetch orders data"],
        )
        assert render_pdf(document).startswith(b"%PDF")
