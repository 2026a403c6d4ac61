"""Price oracle clients."""
from ..config import PriceOracleConfig
from ..interfaces.price_oracle import PriceOracleClient
from .pyth import PythPriceClient
from .uspd import UspdPriceClient

__all__ = ["PythPriceClient", "UspdPriceClient", "build_price_client"]


def build_price_client(config: PriceOracleConfig) -> PriceOracleClient:
    """Instantiate the configured price provider."""
    if config.provider == "pyth":
        return PythPriceClient(config.pyth)
    if config.provider == "uspd":
        return UspdPriceClient(config.uspd)
    raise ValueError(f"Unknown price oracle provider '{config.provider}'")
