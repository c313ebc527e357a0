# Overview: Integer-cent money helpers shared by sales and reporting code.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


BPS_PER_PERCENT = 100
BPS_DENOMINATOR = 10_000


def percent_to_bps(percent) -> int:
    """Convert a percentage (15, "8.25", Decimal) to basis points, half-up."""
    value = Decimal(str(percent)) * BPS_PER_PERCENT
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apply_rate_bps(amount_cents: int, rate_bps: int) -> int:
    """amount * rate, nearest-cent rounding (half-up) for non-negative amounts."""
    return (amount_cents * rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


def format_cents(amount_cents: int) -> str:
    """12345 -> '123.45'"""
    sign = "-" if amount_cents < 0 else ""
    whole, frac = divmod(abs(amount_cents), 100)
    return f"{sign}{whole}.{frac:02d}"
