"""Utility functions for pDEX orders."""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

from ..config import ANVIL_CHAIN_ID
from ..eip712 import ZERO_ADDRESS

# Default ERC-20 decimals
DEFAULT_DECIMALS = 18

__all__ = [
    "ANVIL_CHAIN_ID",
    "DEFAULT_DECIMALS",
    "ZERO_ADDRESS",
    "format_token_amount",
    "parse_token_amount",
    "calculate_payment_amount",
]


def format_token_amount(amount: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Format a raw token amount to a human readable string.

    Args:
        amount: Amount in the token's smallest unit (e.g., 1500000 with 6 decimals)
        decimals: Token decimals

    Returns:
        Human readable string (e.g., "1.5")
    """
    sign = "-" if amount < 0 else ""
    whole, fraction = divmod(abs(amount), 10**decimals)
    if not fraction:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{fraction:0{decimals}d}".rstrip("0")


def parse_token_amount(amount: Union[str, int, Decimal], decimals: int = DEFAULT_DECIMALS) -> int:
    """Parse a human readable amount to the token's smallest unit.

    Args:
        amount: Human readable amount (e.g., "1.50")
        decimals: Token decimals

    Returns:
        Raw integer amount (e.g., 1500000 with 6 decimals)

    Raises:
        ValueError: If the amount is not a finite number or has more
            precision than the token supports
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")

    # Precision covers every digit so scaling never rounds
    with localcontext() as ctx:
        ctx.prec = len(value.as_tuple().digits) + decimals
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
    return int(scaled)


def calculate_payment_amount(volume: int, price_per_token: int) -> int:
    """Calculate what a buyer pays for ``volume`` tokens at ``price_per_token``.

    Both values are raw integers; the result is in the payment token's
    smallest unit.
    """
    if volume < 0 or price_per_token < 0:
        raise ValueError("Volume and price must be non-negative")
    return volume * price_per_token
