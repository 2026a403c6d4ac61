"""Pyth Network (Hermes) price client."""
from __future__ import annotations

import logging
import ssl

import aiohttp
import certifi

from ..config import PythConfig
from ..exceptions import PriceUnavailable
from ..models import PriceAttestation

logger = logging.getLogger(__name__)


def _strip_0x(value: str) -> str:
    return value[2:] if value.lower().startswith("0x") else value


class PythPriceClient:
    """Fetch the latest attested price for a single Pyth feed."""

    def __init__(self, config: PythConfig) -> None:
        self.hermes_url = config.hermes_url
        self.feed_id = _strip_0x(config.feed_id).lower()
        self.timeout = config.timeout

    async def fetch_price(self) -> PriceAttestation:
        """Fetch the latest price update from Hermes.

        The Hermes ``price``/``expo`` pair maps to ``price``/``decimals``
        (``decimals = -expo``); the binary update payload is kept as the
        signature so it can be forwarded on-chain unchanged.
        """
        url = f"{self.hermes_url}?ids[]={self.feed_id}"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching price from Pyth: HTTP %s", response.status
                        )
                        raise PriceUnavailable(f"Pyth returned HTTP {response.status}")
                    data = await response.json()
        except PriceUnavailable:
            raise
        except Exception as e:
            logger.error("Error fetching price from Pyth: %s", e)
            raise PriceUnavailable(f"Pyth request failed: {e}") from e

        return self._parse(data)

    def _parse(self, data: dict) -> PriceAttestation:
        parsed = [
            item for item in data.get("parsed", [])
            if _strip_0x(str(item.get("id", ""))).lower() == self.feed_id
        ]
        if not parsed:
            raise PriceUnavailable(f"Pyth response has no update for feed {self.feed_id}")

        try:
            price_data = parsed[0]["price"]
            price_raw = int(price_data["price"])
            expo = int(price_data["expo"])
            publish_time = int(price_data["publish_time"])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceUnavailable(f"Malformed Pyth price update: {e}") from e

        if price_raw <= 0:
            raise PriceUnavailable(f"Pyth reported a non-positive price: {price_raw}")

        if expo <= 0:
            price, decimals = price_raw, -expo
        else:
            price, decimals = price_raw * 10**expo, 0

        binary = data.get("binary", {}).get("data", [])
        signature = bytes.fromhex(_strip_0x(binary[0])) if binary else b""

        logger.info(
            "Fetched price from Pyth: %d (decimals=%d, publish_time=%d)",
            price, decimals, publish_time,
        )
        return PriceAttestation(
            price=price,
            decimals=decimals,
            timestamp=publish_time,
            asset_pair_id=bytes.fromhex(self.feed_id),
            signature=signature,
        )
