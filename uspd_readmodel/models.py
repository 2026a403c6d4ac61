"""Data models. All frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

MAX_UINT256 = 2**256 - 1

# Ratio reported when there is collateral but no liability.
INFINITE_SENTINEL = MAX_UINT256


@dataclass(frozen=True)
class PriceAttestation:
    """Signed spot price as returned by the price oracle."""

    price: int
    decimals: int
    timestamp: int
    asset_pair_id: bytes = b""
    signature: bytes = b""


@dataclass(frozen=True)
class ProviderPosition:
    """Stabilizer position snapshot; ``next_unallocated_id == 0`` ends the list."""

    min_collateral_ratio_bps: int
    next_unallocated_id: int


@dataclass(frozen=True)
class EscrowBalances:
    """Per-provider escrow snapshot; position escrows hold no unallocated collateral."""

    unallocated_collateral: int
    allocated_collateral: int
    backed_liability_shares: int


@dataclass(frozen=True)
class CapacityScan:
    """Price-independent result of walking the unallocated list."""

    total_principal_capacity: int
    truncated: bool
    providers_scanned: int = 0


@dataclass(frozen=True)
class CapacityResult:
    total_principal_capacity: int
    principal_usd_equivalent: int
    truncated: bool
    computed_at: int

    def to_payload(self) -> dict[str, Any]:
        """Boundary shape; large integers are string-encoded."""
        return {
            "totalPrincipalCapacity": str(self.total_principal_capacity),
            "principalUsdEquivalent": str(self.principal_usd_equivalent),
            "truncated": self.truncated,
            "computedAt": self.computed_at,
        }


class RiskTier(str, Enum):
    DANGER = "danger"
    CAUTION = "caution"
    SAFE = "safe"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RatioInputs:
    """Chain-side inputs of a ratio computation, before pricing."""

    collateral_balance: int
    backed_liability_shares: int
    conversion_factor: int

    @classmethod
    def from_escrow(cls, balances: EscrowBalances, conversion_factor: int) -> "RatioInputs":
        return cls(
            collateral_balance=balances.allocated_collateral,
            backed_liability_shares=balances.backed_liability_shares,
            conversion_factor=conversion_factor,
        )


@dataclass(frozen=True)
class RatioResult:
    ratio_bps: int
    tier: RiskTier

    @property
    def is_infinite(self) -> bool:
        return self.ratio_bps == INFINITE_SENTINEL

    def to_payload(self) -> dict[str, Any]:
        return {
            "ratioBps": "infinite" if self.is_infinite else str(self.ratio_bps),
            "tier": self.tier.value,
        }


@dataclass(frozen=True)
class StabilizerMetadata:
    """NFT metadata document for a stabilizer token."""

    token_id: int
    name: str
    description: str
    image: str
    attributes: tuple[dict[str, str], ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "attributes": [dict(a) for a in self.attributes],
        }
