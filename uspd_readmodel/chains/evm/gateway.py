"""EVM chain data gateway over web3.py with RPC endpoint fallback."""
from __future__ import annotations

import logging
from typing import Any

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from ...config import ChainConfig
from ...exceptions import GatewayUnavailable, InvalidChain
from ...models import MAX_UINT256, ProviderPosition
from .abi import (
    ERC20_MIN_ABI,
    POSITION_ESCROW_ABI,
    RATE_CONTRACT_ABI,
    REPORTER_ABI,
    STABILIZER_ESCROW_ABI,
    STABILIZER_NFT_ABI,
)

logger = logging.getLogger(__name__)


def _as_uint(value: Any, what: str) -> int:
    """Validate a raw uint256 return value."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise GatewayUnavailable(f"{what}: expected uint256, got {type(value).__name__}")
    if value < 0 or value > MAX_UINT256:
        raise GatewayUnavailable(f"{what}: value out of uint256 range")
    return value


def _as_address(value: Any, what: str) -> str | None:
    """Validate a raw address return value; the zero address becomes ``None``."""
    if not isinstance(value, str) or not Web3.is_address(value):
        raise GatewayUnavailable(f"{what}: malformed address {value!r}")
    if int(value, 16) == 0:
        return None
    return Web3.to_checksum_address(value)


class _ChainEndpoints:
    """Per-chain RPC endpoints; remembers the last endpoint that answered."""

    def __init__(self, chain_id: int, config: ChainConfig) -> None:
        self.chain_id = chain_id
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.contracts = dict(config.contracts)
        self.current_rpc_index = 0
        self._clients: dict[int, AsyncWeb3] = {}

    def client(self, index: int) -> AsyncWeb3:
        if index not in self._clients:
            provider = AsyncHTTPProvider(
                self.endpoints[index],
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.timeout)},
            )
            self._clients[index] = AsyncWeb3(provider)
        return self._clients[index]

    async def close(self) -> None:
        clients, self._clients = self._clients, {}
        for index, client in clients.items():
            await client.provider.disconnect()
            logger.debug("Closed RPC session %s", self.endpoints[index])


class Web3ChainGateway:
    """Read USPD contract state on one or more EVM chains."""

    def __init__(self, chains: dict[int, ChainConfig]) -> None:
        self._chains = {cid: _ChainEndpoints(cid, cfg) for cid, cfg in chains.items()}
        self._steth_addresses: dict[int, str] = {}

    @property
    def chain_ids(self) -> tuple[int, ...]:
        return tuple(self._chains)

    async def close(self) -> None:
        """Release the HTTP sessions held by every web3 provider."""
        for chain in self._chains.values():
            await chain.close()

    def _chain(self, chain_id: int) -> _ChainEndpoints:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise InvalidChain(chain_id)
        return chain

    def _contract_address(self, chain_id: int, name: str) -> str:
        address = self._chain(chain_id).contracts.get(name)
        if not address:
            raise GatewayUnavailable(f"No '{name}' contract configured for chain {chain_id}")
        return Web3.to_checksum_address(address)

    async def call(
        self,
        chain_id: int,
        address: str,
        abi: list[dict],
        function_name: str,
        *args: Any,
    ) -> Any:
        """Call a view function, falling back through the chain's endpoints."""
        chain = self._chain(chain_id)
        target = Web3.to_checksum_address(address)

        last_error: Exception | None = None
        for attempt in range(len(chain.endpoints)):
            rpc_index = (chain.current_rpc_index + attempt) % len(chain.endpoints)
            rpc_url = chain.endpoints[rpc_index]

            try:
                contract = chain.client(rpc_index).eth.contract(address=target, abi=abi)
                result = await getattr(contract.functions, function_name)(*args).call()

                if rpc_index != chain.current_rpc_index:
                    logger.info("Chain %d switched to RPC endpoint: %s", chain_id, rpc_url)
                    chain.current_rpc_index = rpc_index

                return result
            except Exception as e:
                last_error = e
                logger.warning(
                    "RPC endpoint %s failed for %s: %s", rpc_url, function_name, e
                )
                if attempt < len(chain.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise GatewayUnavailable(
            f"All RPC endpoints failed for {function_name} on chain {chain_id}. "
            f"Last error: {last_error}"
        )

    # ------------------------------------------------------------------
    # Stabilizer NFT
    # ------------------------------------------------------------------

    async def lowest_unallocated_id(self, chain_id: int) -> int:
        stabilizer = self._contract_address(chain_id, "stabilizer")
        raw = await self.call(chain_id, stabilizer, STABILIZER_NFT_ABI, "lowestUnallocatedId")
        return _as_uint(raw, "lowestUnallocatedId")

    async def position(self, chain_id: int, position_id: int) -> ProviderPosition:
        stabilizer = self._contract_address(chain_id, "stabilizer")
        raw = await self.call(
            chain_id, stabilizer, STABILIZER_NFT_ABI, "positions", position_id
        )
        if not isinstance(raw, (list, tuple)) or len(raw) < 3:
            raise GatewayUnavailable(f"positions({position_id}): malformed result {raw!r}")
        return ProviderPosition(
            min_collateral_ratio_bps=_as_uint(raw[0], "positions.minCollateralRatio"),
            next_unallocated_id=_as_uint(raw[2], "positions.nextUnallocated"),
        )

    async def stabilizer_escrow_address(self, chain_id: int, position_id: int) -> str | None:
        stabilizer = self._contract_address(chain_id, "stabilizer")
        raw = await self.call(
            chain_id, stabilizer, STABILIZER_NFT_ABI, "stabilizerEscrows", position_id
        )
        return _as_address(raw, "stabilizerEscrows")

    async def position_escrow_address(self, chain_id: int, position_id: int) -> str | None:
        stabilizer = self._contract_address(chain_id, "stabilizer")
        raw = await self.call(
            chain_id, stabilizer, STABILIZER_NFT_ABI, "positionEscrows", position_id
        )
        return _as_address(raw, "positionEscrows")

    async def _steth_address(self, chain_id: int) -> str:
        """stETH token address from config, else resolved once from the stabilizer."""
        if chain_id in self._steth_addresses:
            return self._steth_addresses[chain_id]

        configured = self._chain(chain_id).contracts.get("steth")
        if configured:
            address = Web3.to_checksum_address(configured)
        else:
            stabilizer = self._contract_address(chain_id, "stabilizer")
            raw = await self.call(chain_id, stabilizer, STABILIZER_NFT_ABI, "stETH")
            resolved = _as_address(raw, "stETH")
            if resolved is None:
                raise GatewayUnavailable(f"stETH address not set on chain {chain_id}")
            address = resolved

        self._steth_addresses[chain_id] = address
        return address

    # ------------------------------------------------------------------
    # Escrows and balances
    # ------------------------------------------------------------------

    async def unallocated_collateral(self, chain_id: int, escrow_address: str) -> int:
        raw = await self.call(
            chain_id, escrow_address, STABILIZER_ESCROW_ABI, "unallocatedStETH"
        )
        return _as_uint(raw, "unallocatedStETH")

    async def collateral_balance(self, chain_id: int, address: str) -> int:
        steth = await self._steth_address(chain_id)
        raw = await self.call(
            chain_id, steth, ERC20_MIN_ABI, "balanceOf", Web3.to_checksum_address(address)
        )
        return _as_uint(raw, "stETH.balanceOf")

    async def backed_liability_shares(self, chain_id: int, position_escrow_address: str) -> int:
        raw = await self.call(
            chain_id, position_escrow_address, POSITION_ESCROW_ABI, "backedPoolShares"
        )
        return _as_uint(raw, "backedPoolShares")

    # ------------------------------------------------------------------
    # System-wide values
    # ------------------------------------------------------------------

    async def conversion_factor(self, chain_id: int) -> int:
        rate = self._contract_address(chain_id, "rate_contract")
        raw = await self.call(chain_id, rate, RATE_CONTRACT_ABI, "getYieldFactor")
        return _as_uint(raw, "getYieldFactor")

    async def system_collateral(self, chain_id: int) -> int:
        reporter = self._contract_address(chain_id, "reporter")
        raw = await self.call(
            chain_id, reporter, REPORTER_ABI, "totalEthEquivalentAtLastSnapshot"
        )
        return _as_uint(raw, "totalEthEquivalentAtLastSnapshot")

    async def total_liability_shares(self, chain_id: int) -> int:
        cuspd = self._contract_address(chain_id, "cuspd_token")
        raw = await self.call(chain_id, cuspd, ERC20_MIN_ABI, "totalSupply")
        return _as_uint(raw, "cUSPD.totalSupply")
