"""Display and date helpers shared by calculations, drilldowns and exports."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.features.reports.schemas import Customer, Order


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return numerator / denominator


def percentage_of(part: float, whole: float) -> float:
    """``part`` as a percentage of ``whole`` (0 when ``whole`` is 0)."""
    return safe_divide(part, whole) * 100


def percent_change(current: float, previous: float) -> float:
    """Percent change from ``previous`` to ``current`` (0 when ``previous`` is 0)."""
    return safe_divide(current - previous, previous) * 100


def format_currency(amount: float | None, symbol: str = "R") -> str:
    """Format an amount as currency, e.g. ``R1,234.50``."""
    value = amount or 0.0
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_number(value: float | None, decimals: int = 0) -> str:
    """Format a number with thousands separators."""
    return f"{value or 0:,.{decimals}f}"


def format_percent(value: float | None, decimals: int = 1) -> str:
    """Format a percentage value, e.g. ``12.5%``."""
    return f"{value or 0:.{decimals}f}%"


def capitalize_label(value: str | None) -> str:
    """Upper-case the first letter of a label ("beef" -> "Beef")."""
    if not value:
        return "Uncategorized"
    return value[0].upper() + value[1:]


def to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Convert to the report time zone. Naive datetimes are already local."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def local_day(moment: datetime, tz: ZoneInfo) -> date:
    """Local calendar day of a timestamp."""
    return to_local(moment, tz).date()


def local_month(moment: datetime, tz: ZoneInfo) -> str:
    """Local calendar month of a timestamp as ``YYYY-MM``."""
    local = to_local(moment, tz)
    return f"{local.year:04d}-{local.month:02d}"


def iso_week_key(moment: datetime, tz: ZoneInfo) -> str:
    """ISO week of a timestamp as ``YYYY-W{n}``, zero-padded to sort correctly."""
    iso = to_local(moment, tz).isocalendar()
    return f"{iso.year:04d}-W{iso.week:02d}"


def shift_months(moment: datetime, months: int) -> datetime:
    """Move a timestamp by whole months, clamping the day to the month length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    # Day 28 exists in every month; walk back from 31 to the last valid day
    day = moment.day
    while day > 28:
        try:
            return moment.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1
    return moment.replace(year=year, month=month, day=day)


def customer_display_name(customer: Customer | None, order: Order | None = None) -> str:
    """Best available name for a customer.

    Precedence: the name captured on the order, the customer's ``name``,
    ``display_name``, ``full_name``, first plus last name, then the email
    local part capitalised, then ``"Unknown Customer"``.
    """
    if order is not None and order.customer_name:
        return order.customer_name
    if customer is not None:
        for candidate in (customer.name, customer.display_name, customer.full_name):
            if candidate:
                return candidate
        joined = " ".join(p for p in (customer.first_name, customer.last_name) if p)
        if joined:
            return joined
    email = customer_email(customer, order)
    if email and "@" in email:
        return capitalize_label(email.split("@", 1)[0])
    return "Unknown Customer"


def customer_email(customer: Customer | None, order: Order | None = None) -> str:
    """Customer email, falling back to the email captured on the order."""
    if customer is not None and customer.email:
        return customer.email
    if order is not None and order.customer_email:
        return order.customer_email
    return ""
