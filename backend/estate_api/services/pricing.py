"""
Display price formatting for properties and services.
"""

from typing import Optional


def format_currency(amount: float) -> str:
    """US dollar formatting: 1234.5 -> '$1,234.50', -5 -> '-$5.00'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def _format_number(amount: float) -> str:
    # 6.0 -> '6', 2.5 -> '2.5'
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:g}"


def format_price(amount: float, mode: Optional[str] = None) -> str:
    """
    Format a price for display.

    Properties pass no mode and always get a currency string. Services pass
    their pricing mode:

    - free                 -> 'Free'
    - consultation, or 0   -> 'Contact for pricing'
    - hourly               -> '$200.00/hour'
    - percentage           -> '6%'
    - fixed (and others)   -> '$200.00'
    """
    if mode is None:
        return format_currency(amount)
    if mode == "free":
        return "Free"
    if mode == "consultation" or amount == 0:
        return "Contact for pricing"
    if mode == "hourly":
        return f"{format_currency(amount)}/hour"
    if mode == "percentage":
        return f"{_format_number(amount)}%"
    return format_currency(amount)
