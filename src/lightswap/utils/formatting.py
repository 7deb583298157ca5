"""Display helpers for satoshi amounts."""

from decimal import Decimal
from typing import Union


def number_with_commas(value: Union[int, str, Decimal, None]) -> str:
    """Insert thousands separators into an integer amount.

    >>> number_with_commas(1234567)
    '1,234,567'
    """
    if value is None or value == "":
        return "0"
    text = str(value)
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    whole, dot, frac = text.partition(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    return sign + ",".join(groups) + dot + frac


def format_sats(value: Union[int, str, Decimal, None]) -> str:
    """Format an amount as '1,234 sats'."""
    return f"{number_with_commas(value)} sats"
