"""Chain data gateway protocol: read-only on-chain state abstraction."""
from typing import Protocol

from ..models import ProviderPosition


class ChainDataGateway(Protocol):
    """Abstract interface for read-only USPD contract queries.

    Addresses are checksummed hex strings; the zero address is returned as
    ``None``. Implementations raise ``GatewayUnavailable`` on any failure and
    ``InvalidChain`` for an unconfigured chain.
    """

    async def lowest_unallocated_id(self, chain_id: int) -> int: ...

    async def position(self, chain_id: int, position_id: int) -> ProviderPosition: ...

    async def stabilizer_escrow_address(
        self, chain_id: int, position_id: int
    ) -> str | None: ...

    async def unallocated_collateral(self, chain_id: int, escrow_address: str) -> int: ...

    async def position_escrow_address(
        self, chain_id: int, position_id: int
    ) -> str | None: ...

    async def collateral_balance(self, chain_id: int, address: str) -> int: ...

    async def backed_liability_shares(
        self, chain_id: int, position_escrow_address: str
    ) -> int: ...

    async def conversion_factor(self, chain_id: int) -> int: ...

    async def system_collateral(self, chain_id: int) -> int: ...

    async def total_liability_shares(self, chain_id: int) -> int: ...
