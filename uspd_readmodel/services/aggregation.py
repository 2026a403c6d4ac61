"""Aggregation service: cache-or-compute orchestration of the read models."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from ..cache import ResultCache, make_key
from ..capacity import DEFAULT_MAX_HOPS, CapacityEstimator
from ..config import AppConfig
from ..exceptions import (
    ArithmeticOverflow,
    GatewayUnavailable,
    InvalidChain,
    PriceUnavailable,
)
from ..fixed_point import apply_conversion_factor
from ..interfaces.chain import ChainDataGateway
from ..interfaces.price_oracle import PriceOracleClient
from ..metadata import build_stabilizer_metadata
from ..models import (
    CapacityResult,
    CapacityScan,
    EscrowBalances,
    PriceAttestation,
    RatioInputs,
    RatioResult,
    StabilizerMetadata,
)
from ..ratio import DEFAULT_THRESHOLDS, RiskThresholds, calculate_ratio
from ..upstream import DEFAULT_CALL_TIMEOUT, guarded

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors after which a previously computed value may be served instead.
_RECOVERABLE = (GatewayUnavailable, PriceUnavailable, ArithmeticOverflow)


class AggregationService:
    """Single entry point for capacity, ratio and metadata read models."""

    def __init__(
        self,
        gateway: ChainDataGateway,
        oracle: PriceOracleClient,
        cache: ResultCache,
        *,
        max_hops: int = DEFAULT_MAX_HOPS,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        cache_ttl: float | None = None,
        thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
        supported_chains: Iterable[int] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._oracle = oracle
        self._cache = cache
        self._ttl = cache_ttl
        self._timeout = call_timeout
        self._thresholds = thresholds
        self._supported = None if supported_chains is None else frozenset(supported_chains)
        self._clock = clock
        self._estimator = CapacityEstimator(gateway, max_hops=max_hops, call_timeout=call_timeout)

    @classmethod
    def from_config(cls, config: AppConfig) -> "AggregationService":
        """Wire the web3 gateway, configured price client and a fresh cache."""
        from ..chains.evm import Web3ChainGateway
        from ..oracles import build_price_client

        gateway = Web3ChainGateway(config.chains)
        return cls(
            gateway,
            build_price_client(config.price_oracle),
            ResultCache(default_ttl=config.engine.cache_ttl_seconds),
            max_hops=config.engine.max_hops,
            call_timeout=config.engine.call_timeout_seconds,
            thresholds=RiskThresholds(
                safe_bps=config.risk.safe_bps, caution_bps=config.risk.caution_bps
            ),
            supported_chains=gateway.chain_ids,
        )

    async def close(self) -> None:
        """Release upstream connections held by the gateway and the price client."""
        for upstream in (self._gateway, self._oracle):
            close = getattr(upstream, "close", None)
            if close is not None:
                await close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_chain(self, chain_id: int) -> None:
        if self._supported is not None and chain_id not in self._supported:
            raise InvalidChain(chain_id)

    def _now(self) -> int:
        return int(self._clock())

    async def _cached(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        hit = self._cache.get(key)
        if hit is not None:
            logger.debug("Cache hit: %s", key)
            return hit
        value = await compute()
        return self._cache.set(key, value, self._ttl)

    async def _serve(
        self,
        stale_key: str,
        operation: str,
        compute: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``compute``; on a recoverable failure fall back to the last good value."""
        try:
            value = await compute()
        except _RECOVERABLE as e:
            stale = self._cache.last_known(stale_key)
            if stale is None:
                raise
            logger.warning("Serving stale %s after error: %s", operation, e)
            return stale
        self._cache.remember(stale_key, value)
        return value

    async def _fetch_price(self) -> PriceAttestation:
        return await guarded(
            self._oracle.fetch_price(), "fetch_price", self._timeout, PriceUnavailable
        )

    async def _read(self, call: Awaitable[Any], what: str) -> Any:
        return await guarded(call, what, self._timeout)

    # ------------------------------------------------------------------
    # Mintable capacity
    # ------------------------------------------------------------------

    async def get_mintable_capacity(self, chain_id: int) -> CapacityResult:
        """Principal the system can absorb right now, with its USD equivalent."""
        self._check_chain(chain_id)

        async def compute() -> CapacityResult:
            scan: CapacityScan = await self._cached(
                make_key(chain_id, "capacity_scan"),
                lambda: self._estimator.scan(chain_id),
            )
            total = scan.total_principal_capacity
            if total == 0:
                return CapacityResult(
                    total_principal_capacity=0,
                    principal_usd_equivalent=0,
                    truncated=scan.truncated,
                    computed_at=self._now(),
                )

            price = await self._fetch_price()

            async def price_leg() -> CapacityResult:
                return CapacityResult(
                    total_principal_capacity=total,
                    principal_usd_equivalent=self._estimator.principal_usd(total, price),
                    truncated=scan.truncated,
                    computed_at=self._now(),
                )

            return await self._cached(
                make_key(
                    chain_id, "mintable_capacity", total, scan.truncated, price.timestamp
                ),
                price_leg,
            )

        return await self._serve(
            make_key(chain_id, "mintable_capacity"), "mintable capacity", compute
        )

    # ------------------------------------------------------------------
    # Collateralization ratios
    # ------------------------------------------------------------------

    async def _priced_ratio(
        self, inputs: RatioInputs, chain_id: int, operation: str, *params: Any
    ) -> RatioResult:
        liability = apply_conversion_factor(
            inputs.backed_liability_shares, inputs.conversion_factor
        )
        if liability == 0:
            return calculate_ratio(
                inputs.collateral_balance,
                inputs.backed_liability_shares,
                inputs.conversion_factor,
                None,
                self._thresholds,
            )

        price = await self._fetch_price()

        async def compute() -> RatioResult:
            return calculate_ratio(
                inputs.collateral_balance,
                inputs.backed_liability_shares,
                inputs.conversion_factor,
                price,
                self._thresholds,
            )

        # The priced entry can outlive its inputs, so the inputs are part of the key.
        key = make_key(
            chain_id,
            operation,
            *params,
            inputs.collateral_balance,
            inputs.backed_liability_shares,
            inputs.conversion_factor,
            price.timestamp,
        )
        return await self._cached(key, compute)

    async def _system_inputs(self, chain_id: int) -> RatioInputs:
        gw = self._gateway
        collateral, shares, factor = await asyncio.gather(
            self._read(gw.system_collateral(chain_id), "totalEthEquivalentAtLastSnapshot"),
            self._read(gw.total_liability_shares(chain_id), "cUSPD.totalSupply"),
            self._read(gw.conversion_factor(chain_id), "getYieldFactor"),
        )
        return RatioInputs(
            collateral_balance=collateral,
            backed_liability_shares=shares,
            conversion_factor=factor,
        )

    async def get_system_ratio(self, chain_id: int) -> RatioResult:
        """System-wide collateralization ratio and risk tier."""
        self._check_chain(chain_id)

        async def compute() -> RatioResult:
            inputs: RatioInputs = await self._cached(
                make_key(chain_id, "system_ratio_inputs"),
                lambda: self._system_inputs(chain_id),
            )
            return await self._priced_ratio(inputs, chain_id, "system_ratio")

        return await self._serve(make_key(chain_id, "system_ratio"), "system ratio", compute)

    async def _position_inputs(self, chain_id: int, position_id: int) -> RatioInputs:
        gw = self._gateway
        escrow = await self._read(
            gw.position_escrow_address(chain_id, position_id),
            f"positionEscrows({position_id})",
        )
        if not escrow:
            # No escrow: explicit "no position" state, not a failure.
            return RatioInputs(collateral_balance=0, backed_liability_shares=0, conversion_factor=0)

        collateral, shares, factor = await asyncio.gather(
            self._read(gw.collateral_balance(chain_id, escrow), f"balanceOf({escrow})"),
            self._read(gw.backed_liability_shares(chain_id, escrow), f"backedPoolShares({escrow})"),
            self._read(gw.conversion_factor(chain_id), "getYieldFactor"),
        )
        balances = EscrowBalances(
            unallocated_collateral=0,
            allocated_collateral=collateral,
            backed_liability_shares=shares,
        )
        return RatioInputs.from_escrow(balances, factor)

    async def get_position_ratio(self, chain_id: int, position_id: int) -> RatioResult:
        """Collateralization ratio of a single position escrow."""
        if position_id < 0:
            raise ValueError(f"Invalid position ID: {position_id}")
        self._check_chain(chain_id)

        async def compute() -> RatioResult:
            inputs: RatioInputs = await self._cached(
                make_key(chain_id, "position_ratio_inputs", position_id),
                lambda: self._position_inputs(chain_id, position_id),
            )
            return await self._priced_ratio(inputs, chain_id, "position_ratio", position_id)

        return await self._serve(
            make_key(chain_id, "position_ratio", position_id),
            f"position {position_id} ratio",
            compute,
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_stabilizer_metadata(self, chain_id: int, token_id: int) -> StabilizerMetadata:
        """NFT metadata document for a stabilizer token."""
        if token_id < 1:
            raise ValueError(f"Invalid token ID: {token_id}")
        self._check_chain(chain_id)

        async def compute() -> StabilizerMetadata:
            position = await self._read(
                self._gateway.position(chain_id, token_id), f"positions({token_id})"
            )
            return build_stabilizer_metadata(token_id, position)

        return await self._serve(
            make_key(chain_id, "stabilizer_metadata", token_id),
            f"stabilizer {token_id} metadata",
            lambda: self._cached(make_key(chain_id, "stabilizer_metadata", token_id), compute),
        )
