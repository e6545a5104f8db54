"""
Display formatting for amounts, quantities and dates.

Used by PDF rendering, email bodies and error messages; never for storage.
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union, Optional

from flask import current_app, has_app_context

Number = Union[int, float, Decimal, str, None]


def _currency_symbol() -> str:
    if has_app_context():
        return current_app.config.get('CURRENCY_SYMBOL', '')
    return ''


def format_amount(value: Number) -> str:
    """
    Amount with thousands separators and exactly 2 decimals.

    Examples:
        format_amount(2292) -> "2,292.00"
        format_amount('1500.5') -> "1,500.50"
        format_amount(None) -> "-"
    """
    if value is None or value == "":
        return "-"
    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"
    return f"{num:,.2f}"


def format_money(value: Number, symbol: Optional[str] = None) -> str:
    """
    Amount prefixed with the configured currency symbol.

    Examples:
        format_money(2292, '₹') -> "₹2,292.00"
        format_money(-5, '$') -> "-$5.00"
    """
    formatted = format_amount(value)
    if formatted == "-":
        return formatted
    symbol = _currency_symbol() if symbol is None else symbol
    if formatted.startswith('-'):
        return f"-{symbol}{formatted[1:]}"
    return f"{symbol}{formatted}"


def format_quantity(value: Number) -> str:
    """Quantity without insignificant trailing zeros: 10.000 -> "10", 2.500 -> "2.5"."""
    if value is None or value == "":
        return "-"
    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"
    text = f"{num:f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def format_date(value: Union[date, datetime, None]) -> str:
    """DD/MM/YYYY, or "-" when missing."""
    if value is None:
        return "-"
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        return "-"
    return value.strftime("%d/%m/%Y")
