"""PDF export of a generated report.

``build_export`` lays out already-computed report values as tables;
``render_pdf`` draws them with ReportLab platypus. No figures are computed
here beyond formatting.
"""

import io
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.logging import get_logger
from app.features.reports.context import ReportContext
from app.features.reports.formatting import (
    format_currency,
    format_number,
    format_percent,
    safe_divide,
)
from app.features.reports.schemas import ReportResponse, ReportType

logger = get_logger(__name__)

BRAND_NAME = "Amacusi Farming"
SECTION_COLOR = colors.HexColor("#4CAF50")
NO_DATA_TEXT = "No data available for the selected criteria."


@dataclass
class ExportTable:
    """One titled table of the export."""

    title: str
    headers: list[str]
    rows: list[list[str]]
    description: str | None = None
    header_color: str = "#4CAF50"


@dataclass
class ExportDocument:
    """Everything needed to render a report PDF."""

    title: str
    period: str
    generated_at: datetime
    summary_rows: list[list[str]]
    tables: list[ExportTable] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)


def export_filename(prefix: str, report_type: ReportType, day: date) -> str:
    """File name of an export, e.g. ``amacusi-sales-report-2024-05-01.pdf``."""
    return f"{prefix}-{report_type.value}-report-{day.isoformat()}.pdf"


def _sales_tables(report: ReportResponse, symbol: str) -> list[ExportTable]:
    if report.sales is None:
        return []
    sales = report.sales
    category_total = sum(c.total for c in sales.categories)
    type_total = sales.customer_types.bulk.count + sales.customer_types.regular.count
    return [
        ExportTable(
            title="Sales Trends Analysis",
            description="Daily revenue and order patterns over the report period",
            headers=["Date", "Orders", "Revenue", "Customers"],
            rows=[
                [
                    p.date.isoformat(),
                    format_number(p.count),
                    format_currency(p.total, symbol),
                    format_number(p.customer_count),
                ]
                for p in sales.trend
            ],
        ),
        ExportTable(
            title="Top Performing Products",
            headers=["Product", "Category", "Quantity", "Revenue", "Share"],
            rows=[
                [
                    p.name,
                    p.category,
                    format_number(p.quantity),
                    format_currency(p.revenue, symbol),
                    format_percent(p.percentage),
                ]
                for p in sales.top_products
            ],
            header_color="#36A2EB",
        ),
        ExportTable(
            title="Category Performance",
            headers=["Category", "Revenue", "Market Share"],
            rows=[
                [
                    c.category,
                    format_currency(c.total, symbol),
                    format_percent(safe_divide(c.total, category_total) * 100),
                ]
                for c in sales.categories
            ],
            header_color="#9966FF",
        ),
        ExportTable(
            title="Customer Insights",
            headers=["Customer Type", "Orders", "Distribution"],
            rows=[
                [
                    b.customer_type.value.title(),
                    format_number(b.count),
                    format_percent(safe_divide(b.count, type_total) * 100),
                ]
                for b in (sales.customer_types.bulk, sales.customer_types.regular)
            ],
            header_color="#FF9F40",
        ),
    ]


def _payment_tables(report: ReportResponse, symbol: str) -> list[ExportTable]:
    if report.payment is None:
        return []
    payment = report.payment
    outcomes = payment.success
    outcome_total = outcomes.success + outcomes.failed + outcomes.pending
    return [
        ExportTable(
            title="Payment Methods",
            headers=["Method", "Transactions", "Successful", "Success Rate", "Revenue"],
            rows=[
                [
                    m.method.title(),
                    format_number(m.count),
                    format_number(m.success),
                    format_percent(m.success_rate),
                    format_currency(m.total, symbol),
                ]
                for m in payment.methods
            ],
        ),
        ExportTable(
            title="Payment Success Overview",
            headers=["Status", "Orders", "Share"],
            rows=[
                [
                    label,
                    format_number(count),
                    format_percent(safe_divide(count, outcome_total) * 100),
                ]
                for label, count in (
                    ("Successful", outcomes.success),
                    ("Failed", outcomes.failed),
                    ("Pending", outcomes.pending),
                )
            ],
            header_color="#36A2EB",
        ),
        ExportTable(
            title="Orders by Time of Day",
            headers=["Time Slot", "Orders", "Revenue"],
            rows=[
                [b.slot.value, format_number(b.count), format_currency(b.total, symbol)]
                for b in payment.by_time
            ],
            header_color="#FF9F40",
        ),
    ]


def _product_tables(report: ReportResponse, symbol: str) -> list[ExportTable]:
    if report.product is None:
        return []
    product = report.product
    return [
        ExportTable(
            title="Product Performance",
            description="Views, conversion and profit are estimates from configured ratios",
            headers=[
                "Product",
                "Category",
                "Sold",
                "Revenue",
                "Stock",
                "Conversion",
                "Est. Profit",
            ],
            rows=[
                [
                    p.name,
                    p.category,
                    format_number(p.sold),
                    format_currency(p.revenue, symbol),
                    format_number(p.stock),
                    format_percent(p.conversion_rate),
                    format_currency(p.estimated_profit, symbol),
                ]
                for p in product.performance
            ],
        ),
        ExportTable(
            title="Category Profitability",
            description="Profit after estimated cost of goods",
            headers=["Category", "Revenue", "Units", "Est. Profit", "Margin"],
            rows=[
                [
                    c.category,
                    format_currency(c.revenue, symbol),
                    format_number(c.units),
                    format_currency(c.estimated_profit, symbol),
                    format_percent(c.margin),
                ]
                for c in product.category_profitability
            ],
            header_color="#9966FF",
        ),
    ]


def _customer_tables(report: ReportResponse, symbol: str) -> list[ExportTable]:
    if report.customer is None:
        return []
    customer = report.customer
    return [
        ExportTable(
            title="Customer Lifetime Value",
            headers=["Customer", "Email", "Orders", "Total Spent", "Avg Order", "Status"],
            rows=[
                [
                    c.name,
                    c.email,
                    format_number(c.order_count),
                    format_currency(c.total_spent, symbol),
                    format_currency(c.avg_order_value, symbol),
                    c.status.value,
                ]
                for c in customer.customers
            ],
        ),
        ExportTable(
            title="Customer Value Segments",
            headers=["Segment", "Customers", "Spending Range"],
            rows=[
                [s.segment.value, format_number(s.count), s.spending_range]
                for s in customer.segments
            ],
            header_color="#36A2EB",
        ),
        ExportTable(
            title="Customer Acquisition",
            headers=["Month", "New Customers"],
            rows=[[m.month, format_number(m.count)] for m in customer.acquisition],
            header_color="#FF9F40",
        ),
        ExportTable(
            title="Category Spending",
            headers=["Category", "Total Spent", "Customers", "Units", "Revenue Share"],
            rows=[
                [
                    c.category,
                    format_currency(c.total_spent, symbol),
                    format_number(c.customer_count),
                    format_number(c.units_sold),
                    format_percent(c.percentage_of_revenue),
                ]
                for c in customer.category_spending
            ],
            header_color="#9966FF",
        ),
    ]


SECTION_BUILDERS = {
    ReportType.SALES: _sales_tables,
    ReportType.PAYMENT: _payment_tables,
    ReportType.PRODUCT: _product_tables,
    ReportType.CUSTOMER: _customer_tables,
}


def build_export(ctx: ReportContext, report: ReportResponse) -> ExportDocument:
    """Lay out a generated report as an export document."""
    symbol = ctx.currency_symbol
    summary = report.summary
    period = f"{report.start_date.isoformat()} to {report.end_date.isoformat()}"
    avg_order = safe_divide(summary.total_revenue, summary.total_orders)

    return ExportDocument(
        title=f"{BRAND_NAME.upper()} - {report.report_type.value.upper()} REPORT",
        period=period,
        generated_at=ctx.now,
        summary_rows=[
            ["Total Orders", format_number(summary.total_orders)],
            ["Total Revenue", format_currency(summary.total_revenue, symbol)],
            ["Products Sold", format_number(summary.total_products_sold)],
            ["Active Customers", format_number(summary.total_customers)],
            ["Average Order Value", format_currency(avg_order, symbol)],
            ["Date Range", period],
            ["Report Generated", ctx.now.strftime("%Y-%m-%d %H:%M")],
        ],
        tables=SECTION_BUILDERS[report.report_type](report, symbol),
        notices=list(report.notices),
    )


def _table_style(header_color: str) -> TableStyle:
    return TableStyle(
        [
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(header_color)),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, 0), 10),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
            ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
            ("FONTSIZE", (0, 1), (-1, -1), 8),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F5F5F5")]),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]
    )


def render_pdf(document: ExportDocument) -> bytes:
    """Render an export document to PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=document.title)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle", parent=styles["Heading1"], fontSize=18, alignment=1, spaceAfter=6
    )
    period_style = ParagraphStyle(
        "ReportPeriod", parent=styles["Normal"], alignment=1, textColor=colors.grey
    )
    section_style = ParagraphStyle(
        "ReportSection", parent=styles["Heading2"], textColor=SECTION_COLOR
    )

    elements: list[Any] = [
        Paragraph(document.title, title_style),
        Paragraph(f"Report Period: {document.period}", period_style),
        Spacer(1, 16),
    ]
    for notice in document.notices:
        elements.append(Paragraph(notice, styles["Italic"]))
    elements.append(Paragraph("EXECUTIVE SUMMARY", section_style))
    summary = Table([["Metric", "Value"], *document.summary_rows], hAlign="LEFT")
    summary.setStyle(_table_style("#4CAF50"))
    elements.extend([summary, Spacer(1, 16)])

    for table in document.tables:
        elements.append(Paragraph(table.title.upper(), section_style))
        if table.description:
            elements.append(Paragraph(table.description, styles["Normal"]))
        if table.rows:
            body = Table([table.headers, *table.rows], hAlign="LEFT", repeatRows=1)
            body.setStyle(_table_style(table.header_color))
            elements.append(body)
        else:
            elements.append(Paragraph(NO_DATA_TEXT, styles["Normal"]))
        elements.append(Spacer(1, 14))

    generated = document.generated_at.strftime("%Y-%m-%d %H:%M")

    def draw_footer(canvas: Any, doc_template: Any) -> None:
        canvas.saveState()
        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(colors.grey)
        width = doc_template.pagesize[0]
        footer = f"Generated on {generated} | Page {doc_template.page}"
        canvas.drawCentredString(width / 2, 24, footer)
        canvas.drawCentredString(width / 2, 15, f"{BRAND_NAME} - Confidential Business Report")
        canvas.restoreState()

    doc.build(elements, onFirstPage=draw_footer, onLaterPages=draw_footer)
    content = buffer.getvalue()
    logger.info(
        "reports.export_rendered",
        title=document.title,
        tables=len(document.tables),
        size_bytes=len(content),
    )
    return content
