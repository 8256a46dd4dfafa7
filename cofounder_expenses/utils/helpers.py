"""
Helper Utilities
Common helper functions
"""

from datetime import date, datetime, timezone
from decimal import Decimal


CURRENCY_SYMBOLS = {
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
    "CAD": "C$",
    "AUD": "A$",
    "NZD": "NZ$",
    "JPY": "¥",
    "CHF": "CHF ",
    "SEK": "kr ",
    "NOK": "kr ",
    "INR": "₹",
    "ZAR": "R",
}


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.

    Every workflow timestamp (rejections, nudges, cooldown checks) is read
    from here so tests can pin the clock in one place.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_currency(amount: Decimal, currency: str = "USD") -> str:
    """
    Format amount as currency

    Args:
        amount: Amount to format
        currency: Currency code

    Returns:
        str: Formatted currency string
    """
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol is None:
        return f"{currency} {amount:,.2f}"
    return f"{symbol}{amount:,.2f}"


def format_date(value, format_str: str = "%b %d, %Y") -> str:
    """Format a date or datetime for e-mails and notifications"""
    return value.strftime(format_str)



def month_start(value: date) -> date:
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """First day of the month `months` away from `value`'s month"""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)
