"""Collateralization ratio calculation and risk classification. No I/O."""
from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ArithmeticOverflow
from .fixed_point import apply_conversion_factor, ratio_bps, scale_by_price
from .models import INFINITE_SENTINEL, PriceAttestation, RatioResult, RiskTier


@dataclass(frozen=True)
class RiskThresholds:
    safe_bps: int = 15_000
    caution_bps: int = 13_000


DEFAULT_THRESHOLDS = RiskThresholds()


def classify(ratio: int, thresholds: RiskThresholds = DEFAULT_THRESHOLDS) -> RiskTier:
    """Map a ratio in basis points to a risk tier.

    Only the infinite sentinel carries no colour signal; a finite 0 means
    liability with no collateral behind it. The empty position is tiered by
    ``calculate_ratio`` before classification.
    """
    if ratio == INFINITE_SENTINEL:
        return RiskTier.UNKNOWN
    if ratio >= thresholds.safe_bps:
        return RiskTier.SAFE
    if ratio >= thresholds.caution_bps:
        return RiskTier.CAUTION
    return RiskTier.DANGER


def calculate_ratio(
    collateral_balance: int,
    backed_liability_shares: int,
    conversion_factor: int,
    price: PriceAttestation | None,
    thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
) -> RatioResult:
    """Calculate the collateralization ratio of a collateral/liability pair.

    liability      = shares * conversion_factor / 1e18
    collateral_usd = collateral * price / 10^price.decimals   (18 decimals)
    ratio_bps      = collateral_usd * 10000 / liability

    ``price`` is only consulted when the liability is non-zero and may be
    ``None`` otherwise.
    """
    liability = apply_conversion_factor(backed_liability_shares, conversion_factor)

    if liability == 0:
        ratio = INFINITE_SENTINEL if collateral_balance > 0 else 0
        return RatioResult(ratio_bps=ratio, tier=RiskTier.UNKNOWN)

    if price is None:
        raise ValueError("a price attestation is required when liability is non-zero")

    collateral_usd = scale_by_price(collateral_balance, price.price, price.decimals, 18)
    ratio = ratio_bps(collateral_usd, liability)
    if ratio >= INFINITE_SENTINEL:
        raise ArithmeticOverflow("ratio collides with the infinite sentinel")
    return RatioResult(ratio_bps=ratio, tier=classify(ratio, thresholds))
