"""Exact-integer fixed-point helpers: no floats for money-like values.

Operands and results are bounded to uint256. Intermediate products are plain
Python ints, so ``a * b // c`` never loses precision before the division.
"""
from __future__ import annotations

from .exceptions import ArithmeticOverflow
from .models import MAX_UINT256

BPS_DENOMINATOR = 10_000
WAD = 10**18


def check_uint256(value: int, name: str = "value") -> int:
    """Return ``value`` if it is a valid uint256, otherwise raise."""
    if value < 0:
        raise ValueError(f"{name} must be unsigned, got {value}")
    if value > MAX_UINT256:
        raise ArithmeticOverflow(f"{name} does not fit in uint256")
    return value


def scale_by_basis_points(amount: int, bps: int) -> int:
    """``amount * bps / 10000``, rounded down."""
    check_uint256(amount, "amount")
    check_uint256(bps, "bps")
    return check_uint256(amount * bps // BPS_DENOMINATOR, "result")


def scale_by_price(
    amount: int,
    price: int,
    price_decimals: int,
    output_decimals: int = 18,
    amount_decimals: int = 18,
) -> int:
    """Convert a native ``amount`` into a quote value with ``output_decimals``.

    Computed as one multiply followed by one divide:
        amount * price * 10^output_decimals / 10^(price_decimals + amount_decimals)
    """
    check_uint256(amount, "amount")
    check_uint256(price, "price")
    if price_decimals < 0 or output_decimals < 0 or amount_decimals < 0:
        raise ValueError("decimals must be non-negative")
    numerator = amount * price * 10**output_decimals
    return check_uint256(
        numerator // 10 ** (price_decimals + amount_decimals), "result"
    )


def apply_conversion_factor(shares: int, factor: int) -> int:
    """``shares * factor / 1e18``: liability shares to liability value."""
    check_uint256(shares, "shares")
    check_uint256(factor, "factor")
    return check_uint256(shares * factor // WAD, "result")


def ratio_bps(value: int, reference: int) -> int:
    """``value * 10000 / reference``, rounded down. ``reference`` must be > 0."""
    check_uint256(value, "value")
    check_uint256(reference, "reference")
    if reference == 0:
        raise ZeroDivisionError("reference must be positive")
    return check_uint256(value * BPS_DENOMINATOR // reference, "result")
