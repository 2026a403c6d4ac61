"""Short-TTL in-memory result cache shielding the upstream data sources."""
from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from threading import RLock
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0
DEFAULT_MAX_STALE_ENTRIES = 1024


def make_key(chain_id: int, operation: str, *params: Any) -> str:
    """Build a deterministic ``chain:operation:params-hash`` cache key."""
    params_str = ":".join(str(p) for p in params)
    params_hash = hashlib.sha256(params_str.encode()).hexdigest()[:16]
    return f"{chain_id}:{operation}:{params_hash}"


class ResultCache:
    """Per-key TTL cache; expired entries are swept lazily on every access.

    Besides the TTL-bound entries, the last successful value per
    ``(chain, operation)`` is remembered so callers can serve stale data when a
    recompute fails. That store is LRU-capped at ``max_stale_entries``.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        max_stale_entries: int = DEFAULT_MAX_STALE_ENTRIES,
    ) -> None:
        if max_stale_entries < 1:
            raise ValueError("max_stale_entries must be >= 1")
        self._default_ttl = default_ttl
        self._max_stale = max_stale_entries
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._last_known: OrderedDict[str, Any] = OrderedDict()
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` on a miss or an expired entry."""
        with self._lock:
            now = self._clock()
            self._sweep_locked(now)
            entry = self._entries.get(key)
            if entry is None:
                return None
            return entry[1]

    def set(self, key: str, value: Any, ttl: float | None = None) -> Any:
        ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            now = self._clock()
            self._sweep_locked(now)
            self._entries[key] = (now + max(ttl, 0.0), value)
        return value

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def remember(self, stale_key: str, value: Any) -> None:
        """Record ``value`` as the last good result for ``stale_key``."""
        with self._lock:
            self._last_known[stale_key] = value
            self._last_known.move_to_end(stale_key)
            while len(self._last_known) > self._max_stale:
                evicted, _ = self._last_known.popitem(last=False)
                logger.debug("Evicted last-known value %s", evicted)

    def last_known(self, stale_key: str) -> Any | None:
        with self._lock:
            if stale_key not in self._last_known:
                return None
            self._last_known.move_to_end(stale_key)
            return self._last_known[stale_key]

    @property
    def stale_size(self) -> int:
        with self._lock:
            return len(self._last_known)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_known.clear()
