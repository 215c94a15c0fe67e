"""Reporting module for the storefront.

Reduces orders, products and customers into sales, payment, product and
customer reports, business metrics, drilldowns and PDF exports.
"""

from app.features.reports.routes import router
from app.features.reports.schemas import (
    BusinessMetrics,
    PaymentOutcome,
    ReportFilters,
    ReportResponse,
    ReportType,
)
from app.features.reports.service import ReportService, get_report_service

__all__ = [
    "BusinessMetrics",
    "PaymentOutcome",
    "ReportFilters",
    "ReportResponse",
    "ReportService",
    "ReportType",
    "get_report_service",
    "router",
]
