"""
In-memory cache for forward, reverse and record lookups.

Three independently sized and TTL'd maps, each an LRU built on an
OrderedDict with its own lock. Expired entries are treated as absent and
evicted lazily on read; a periodic sweep evicts them proactively. The cache
knows nothing about resolver identity: it is keyed by name or address only.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, TypeVar

from .audit_logger import AuditLogger, ComponentLogger
from .config import CacheConfig
from .models import CacheEntry, CacheStats, NameRecords, ResolutionResult
from .scheduler import PeriodicTask

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

ForwardKey = tuple[str, Optional[int], Optional[int]]


def _address_key(address: str) -> str:
    # Hex addresses are case-insensitive; base58 (Solana) addresses are not
    if address[:2] in ("0x", "0X"):
        return address.lower()
    return address


class _Counters:
    """Hit/miss/eviction/expiration counters shared by the three maps."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def add(self, hits: int = 0, misses: int = 0, evictions: int = 0, expirations: int = 0) -> None:
        with self._lock:
            self.hits += hits
            self.misses += misses
            self.evictions += evictions
            self.expirations += expirations

    def reset(self) -> None:
        with self._lock:
            self.hits = self.misses = self.evictions = self.expirations = 0


class LRUTTLMap(Generic[K, V]):
    """
    Size-bounded map with per-entry TTL.

    A hit moves the key to the most-recently-used end. Inserting a new key
    into a full map evicts the least-recently-used key first.
    """

    def __init__(
        self,
        max_size: int,
        ttl: float,
        clock: Callable[[], float],
        counters: Optional[_Counters] = None,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        self._counters = counters or _Counters()
        self._data: "OrderedDict[K, CacheEntry[V]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: K) -> bool:
        with self._lock:
            entry = self._data.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self._counters.add(misses=1)
                return None
            if entry.is_expired(self._clock()):
                del self._data[key]
                self._counters.add(misses=1, expirations=1)
                return None
            self._data.move_to_end(key)
            self._counters.add(hits=1)
            return entry.value

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(value=value, created_at=self._clock(), ttl=self._ttl if ttl is None else ttl)
        with self._lock:
            if key in self._data:
                self._data[key] = entry
                self._data.move_to_end(key)
                return
            if len(self._data) >= self._max_size:
                self._data.popitem(last=False)
                self._counters.add(evictions=1)
            self._data[key] = entry

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def delete_where(self, predicate: Callable[[K, V], bool]) -> int:
        with self._lock:
            doomed = [k for k, e in self._data.items() if predicate(k, e.value)]
            for key in doomed:
                del self._data[key]
            return len(doomed)

    def sweep(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._data.items() if e.is_expired(now)]
            for key in expired:
                del self._data[key]
        if expired:
            self._counters.add(expirations=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._data.keys())


class NameCache:
    """
    Memoization layer for the dispatcher.

    Forward entries are keyed by (name, chain_id, coin_type), reverse entries
    by lower-cased address and record entries by name.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the cache.

        Args:
            config: Sizes, TTLs and sweep interval (defaults to CacheConfig())
            clock: Monotonic clock in seconds; tests inject a fake
            logger: Optional audit logger
        """
        self._config = config or CacheConfig()
        self._clock = clock
        self._counters = _Counters()
        self._forward: LRUTTLMap[ForwardKey, ResolutionResult] = LRUTTLMap(
            self._config.forward_max_size, self._config.forward_ttl_seconds, clock, self._counters
        )
        self._reverse: LRUTTLMap[str, str] = LRUTTLMap(
            self._config.reverse_max_size, self._config.reverse_ttl_seconds, clock, self._counters
        )
        self._records: LRUTTLMap[str, NameRecords] = LRUTTLMap(
            self._config.records_max_size, self._config.records_ttl_seconds, clock, self._counters
        )
        self._sweeper: Optional[PeriodicTask] = None
        self._logger = logger
        self._log = ComponentLogger(logger, "NameCache")

    @property
    def config(self) -> CacheConfig:
        return self._config

    # Forward

    def get_forward(
        self,
        name: str,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
    ) -> Optional[ResolutionResult]:
        return self._forward.get((name, chain_id, coin_type))

    def set_forward(
        self,
        name: str,
        result: ResolutionResult,
        chain_id: Optional[int] = None,
        coin_type: Optional[int] = None,
        ttl: Optional[float] = None,
    ) -> None:
        self._forward.set((name, chain_id, coin_type), result, ttl)

    def clear_forward(self) -> None:
        self._forward.clear()

    # Reverse

    def get_reverse(self, address: str) -> Optional[str]:
        return self._reverse.get(_address_key(address))

    def set_reverse(self, address: str, name: str, ttl: Optional[float] = None) -> None:
        self._reverse.set(_address_key(address), name, ttl)

    def clear_reverse(self) -> None:
        self._reverse.clear()

    # Records

    def get_records(self, name: str) -> Optional[NameRecords]:
        return self._records.get(name)

    def set_records(self, name: str, records: NameRecords, ttl: Optional[float] = None) -> None:
        self._records.set(name, records, ttl)

    def clear_records(self) -> None:
        self._records.clear()

    # Invalidation

    def invalidate(self, name: str) -> int:
        """
        Remove a name from all three maps.

        Drops every forward entry for the name (any chain or coin type), its
        records, and reverse entries pointing at it.
        """
        removed = self._forward.delete_where(lambda key, _: key[0] == name)
        removed += int(self._records.delete(name))
        removed += self._reverse.delete_where(lambda _, value: value == name)
        return removed

    def invalidate_address(self, address: str) -> bool:
        return self._reverse.delete(_address_key(address))

    def clear(self) -> None:
        self._forward.clear()
        self._reverse.clear()
        self._records.clear()

    # Maintenance

    def sweep(self) -> int:
        """Evict expired entries from all maps."""
        evicted = self._forward.sweep() + self._reverse.sweep() + self._records.sweep()
        if evicted:
            self._log.debug("Swept expired cache entries", {"evicted": evicted})
        return evicted

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None:
            self._sweeper = PeriodicTask(
                name="cache-sweep",
                interval_seconds=self._config.cleanup_interval_seconds,
                callback=self.sweep,
                logger=self._logger,
            )
        self._sweeper.start()

    async def stop(self) -> None:
        if self._sweeper is not None:
            await self._sweeper.stop()

    def is_sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_running()

    # Statistics

    def get_stats(self) -> CacheStats:
        return CacheStats(
            hits=self._counters.hits,
            misses=self._counters.misses,
            evictions=self._counters.evictions,
            expirations=self._counters.expirations,
            forward_size=len(self._forward),
            reverse_size=len(self._reverse),
            records_size=len(self._records),
        )

    def reset_stats(self) -> None:
        self._counters.reset()
