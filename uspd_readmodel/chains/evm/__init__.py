from .gateway import Web3ChainGateway

__all__ = ["Web3ChainGateway"]
