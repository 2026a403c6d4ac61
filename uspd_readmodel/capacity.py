"""Mintable capacity estimation over the unallocated stabilizer list."""
from __future__ import annotations

import logging

from .fixed_point import BPS_DENOMINATOR, check_uint256, scale_by_price
from .interfaces.chain import ChainDataGateway
from .models import CapacityScan, PriceAttestation
from .upstream import DEFAULT_CALL_TIMEOUT, guarded

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 10


def provider_contribution(available: int, min_collateral_ratio_bps: int) -> int:
    """Principal a depositor can add against ``available`` spare collateral.

    The stabilizer tops up the remainder to its declared minimum ratio, so
        contribution = available * 10000 / (min_ratio - 10000)
    Providers at or below 100% offer no leverage room and contribute 0.
    """
    denominator = min_collateral_ratio_bps - BPS_DENOMINATOR
    if denominator <= 0 or available <= 0:
        return 0
    return available * BPS_DENOMINATOR // denominator


class CapacityEstimator:
    """Walk the unallocated list and sum what each stabilizer can back."""

    def __init__(
        self,
        gateway: ChainDataGateway,
        max_hops: int = DEFAULT_MAX_HOPS,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        if max_hops < 1:
            raise ValueError("max_hops must be >= 1")
        self._gateway = gateway
        self._max_hops = max_hops
        self._timeout = call_timeout

    async def scan(self, chain_id: int) -> CapacityScan:
        """Scan at most ``max_hops`` providers starting at the lowest unallocated id.

        Any failed read aborts the scan with ``GatewayUnavailable``.
        """
        gw = self._gateway
        current_id = await guarded(
            gw.lowest_unallocated_id(chain_id), "lowestUnallocatedId", self._timeout
        )

        total = 0
        hops = 0
        while hops < self._max_hops and current_id != 0:
            hops += 1
            position = await guarded(
                gw.position(chain_id, current_id), f"positions({current_id})", self._timeout
            )
            next_id = position.next_unallocated_id

            if position.min_collateral_ratio_bps <= BPS_DENOMINATOR:
                logger.debug(
                    "Stabilizer %d: min ratio %d bps offers no room, skipping",
                    current_id, position.min_collateral_ratio_bps,
                )
                current_id = next_id
                continue

            escrow = await guarded(
                gw.stabilizer_escrow_address(chain_id, current_id),
                f"stabilizerEscrows({current_id})",
                self._timeout,
            )
            if not escrow:
                logger.debug("Stabilizer %d has no escrow, skipping", current_id)
                current_id = next_id
                continue

            available = await guarded(
                gw.unallocated_collateral(chain_id, escrow),
                f"unallocatedStETH({escrow})",
                self._timeout,
            )
            if available <= 0:
                current_id = next_id
                continue

            contribution = provider_contribution(
                available, position.min_collateral_ratio_bps
            )
            logger.debug(
                "Stabilizer %d: available=%d min_ratio=%d bps contribution=%d",
                current_id, available, position.min_collateral_ratio_bps, contribution,
            )
            total = check_uint256(total + contribution, "total principal capacity")
            current_id = next_id

        truncated = current_id != 0
        if truncated:
            logger.warning(
                "Capacity scan on chain %d stopped after %d hops; more capacity may exist",
                chain_id, hops,
            )
        logger.info(
            "Capacity scan on chain %d: %d providers, total principal %d",
            chain_id, hops, total,
        )
        return CapacityScan(
            total_principal_capacity=total, truncated=truncated, providers_scanned=hops
        )

    @staticmethod
    def principal_usd(total_principal: int, price: PriceAttestation | None) -> int:
        """USD value (18 decimals) of ``total_principal``; 0 needs no price."""
        if total_principal == 0:
            return 0
        if price is None:
            raise ValueError("a price attestation is required for non-zero capacity")
        return scale_by_price(total_principal, price.price, price.decimals, 18)
