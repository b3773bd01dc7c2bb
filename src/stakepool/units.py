"""Currency unit conversion between decimal strings and base units.

Base units carry 18 fractional digits (the same scale as wei), so the
conversion is delegated to web3's unit helpers.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from web3 import Web3

BASE_UNIT_DECIMALS = 18


def to_base_units(value: Union[str, int, Decimal]) -> int:
    """Convert a currency amount ("1.5") into integer base units.

    Raises ValueError for malformed, negative or over-precise amounts.
    """
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a currency amount: {value!r}")
    if amount < 0:
        raise ValueError(f"Currency amount must be non-negative, got {value}")
    base = amount.scaleb(BASE_UNIT_DECIMALS)
    if base != base.to_integral_value():
        raise ValueError(
            f"Currency amount {value} has more than {BASE_UNIT_DECIMALS} decimal places"
        )
    return int(Web3.to_wei(amount, "ether"))


def from_base_units(amount: int) -> Decimal:
    """Convert integer base units back into a currency Decimal."""
    return Decimal(Web3.from_wei(amount, "ether"))


def format_amount(amount: int) -> str:
    """Human-readable currency amount without trailing zeros."""
    return format(from_base_units(amount).normalize(), "f")
