"""Price oracle protocol: signed price feed abstraction."""
from typing import Protocol

from ..models import PriceAttestation


class PriceOracleClient(Protocol):
    """Abstract interface for fetching a signed ETH/USD price attestation."""

    async def fetch_price(self) -> PriceAttestation: ...
