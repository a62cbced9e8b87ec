"""
Platform fee arithmetic.

All amounts are integers in the currency's smallest unit. The fee rate
is configured in basis points (PLATFORM_FEE_BASIS_POINTS, 800 = 8%) and
rounded half up to the nearest minor unit, so results never depend on
floating-point rounding.

Usage:
    from payments.fees import FeeBreakdown

    breakdown = FeeBreakdown.for_amount(10_000)
    breakdown.platform_fee_cents   # 800
    breakdown.total_amount_cents   # 10_800
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

BASIS_POINTS = 10_000


def fee_basis_points() -> int:
    return settings.PLATFORM_FEE_BASIS_POINTS


def platform_fee_cents(amount_cents: int, basis_points: int | None = None) -> int:
    """
    Compute the platform fee for a base amount, rounded half up.

    Args:
        amount_cents: Base price in minor units (non-negative)
        basis_points: Fee rate override (defaults to the configured rate)

    Raises:
        ValueError: If amount_cents is negative
    """
    if amount_cents < 0:
        raise ValueError("amount_cents must not be negative")
    bps = fee_basis_points() if basis_points is None else basis_points
    return (amount_cents * bps + BASIS_POINTS // 2) // BASIS_POINTS


def total_amount_cents(amount_cents: int, basis_points: int | None = None) -> int:
    """Amount charged to the customer: base price plus platform fee."""
    return amount_cents + platform_fee_cents(amount_cents, basis_points)


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Amount, fee and total for one charge.

    Attributes:
        amount_cents: Base price
        platform_fee_cents: Marketplace fee
        total_amount_cents: amount_cents + platform_fee_cents
    """

    amount_cents: int
    platform_fee_cents: int
    total_amount_cents: int

    @classmethod
    def for_amount(cls, amount_cents: int, basis_points: int | None = None) -> FeeBreakdown:
        fee = platform_fee_cents(amount_cents, basis_points)
        return cls(
            amount_cents=amount_cents,
            platform_fee_cents=fee,
            total_amount_cents=amount_cents + fee,
        )
