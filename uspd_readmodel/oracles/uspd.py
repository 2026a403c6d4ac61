"""Signed USPD price endpoint client."""
from __future__ import annotations

import logging
import ssl

import aiohttp
import certifi

from ..config import UspdPriceConfig
from ..exceptions import PriceUnavailable
from ..models import PriceAttestation

logger = logging.getLogger(__name__)


def _hex_bytes(value: str) -> bytes:
    value = value[2:] if value.lower().startswith("0x") else value
    return bytes.fromhex(value)


class UspdPriceClient:
    """Fetch the signed ETH/USD attestation served by the USPD price API."""

    def __init__(self, config: UspdPriceConfig) -> None:
        self.url = config.url
        self.timeout = config.timeout

    async def fetch_price(self) -> PriceAttestation:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    self.url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching USPD price: HTTP %s", response.status
                        )
                        raise PriceUnavailable(f"Price API returned HTTP {response.status}")
                    data = await response.json()
        except PriceUnavailable:
            raise
        except Exception as e:
            logger.error("Error fetching USPD price: %s", e)
            raise PriceUnavailable(f"Price API request failed: {e}") from e

        return self._parse(data)

    @staticmethod
    def _parse(data: dict) -> PriceAttestation:
        """Parse ``{price, decimals, dataTimestamp, assetPair, signature}``."""
        try:
            price = int(data["price"])
            decimals = int(data["decimals"])
            timestamp = int(data["dataTimestamp"])
            asset_pair_id = _hex_bytes(str(data.get("assetPair", "")))
            signature = _hex_bytes(str(data.get("signature", "")))
        except (KeyError, TypeError, ValueError) as e:
            raise PriceUnavailable(f"Malformed price response: {e}") from e

        if price <= 0 or decimals < 0:
            raise PriceUnavailable(f"Invalid price {price} with {decimals} decimals")

        logger.info("Fetched USPD price: %d (decimals=%d, ts=%d)", price, decimals, timestamp)
        return PriceAttestation(
            price=price,
            decimals=decimals,
            timestamp=timestamp,
            asset_pair_id=asset_pair_id,
            signature=signature,
        )
