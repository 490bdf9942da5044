"""Display helpers for amounts and percentages."""

from typing import Union

from spendwise import config


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format an amount with thousands separators and up to two decimals.

    Example:
        >>> format_currency(18450)
        '₱18,450'
        >>> format_currency(1234.5)
        '₱1,234.5'
    """
    formatted = f"{amount:,.2f}".rstrip("0").rstrip(".")
    return f"{config.CURRENCY_SYMBOL}{formatted}" if include_sign else formatted


def format_percentage(percentage: Union[float, int]) -> str:
    return f"{percentage}%"
