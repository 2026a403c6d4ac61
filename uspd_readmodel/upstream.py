"""Timeout and error normalisation for upstream calls."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from .exceptions import EngineError, GatewayUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CALL_TIMEOUT = 10.0


async def guarded(
    call: Awaitable[T],
    what: str,
    timeout: float = DEFAULT_CALL_TIMEOUT,
    error_cls: type[EngineError] = GatewayUnavailable,
) -> T:
    """Await ``call`` with a timeout.

    A timeout or any non-engine exception is re-raised as ``error_cls``;
    engine errors (e.g. ``InvalidChain``) pass through unchanged.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except EngineError:
        raise
    except asyncio.TimeoutError as e:
        logger.warning("%s timed out after %.1fs", what, timeout)
        raise error_cls(f"{what} timed out after {timeout}s") from e
    except Exception as e:
        logger.warning("%s failed: %s", what, e)
        raise error_cls(f"{what} failed: {e}") from e
