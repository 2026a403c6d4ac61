"""Error taxonomy for the read-model engine."""
from __future__ import annotations


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class GatewayUnavailable(EngineError):
    """A chain read failed, timed out, or returned a malformed result."""


class PriceUnavailable(EngineError):
    """The price oracle could not provide a usable attestation."""


class ArithmeticOverflow(EngineError, ArithmeticError):
    """An operand or result does not fit in an unsigned 256-bit integer."""


class InvalidChain(EngineError):
    """No gateway is configured for the requested chain identifier."""

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"Unsupported chain id: {chain_id}")
        self.chain_id = chain_id
