"""Protocol interfaces for the read-model engine's collaborators."""
from .chain import ChainDataGateway
from .price_oracle import PriceOracleClient

__all__ = ["ChainDataGateway", "PriceOracleClient"]
