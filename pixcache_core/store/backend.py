"""PixCache Storage Backend - Abstract Resource Storage Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional

from pixcache_core.cache.entry import CacheEntry
from pixcache_core.cache.keys import KeyResolver

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

DEFAULT_TTL = timedelta(days=7)


@dataclass
class StorageConfig:
    """Storage backend configuration.

    Attributes:
        name: Backend name
        ttl: Staleness threshold used by sweeping backends
    """

    name: str = "storage"
    ttl: timedelta = DEFAULT_TTL

    @property
    def ttl_seconds(self) -> float:
        return self.ttl.total_seconds()


@dataclass
class StorageStats:
    """Storage backend statistics.

    Attributes:
        reads: Number of read operations
        hits: Reads that found an entry
        writes: Number of write operations
        deletes: Number of delete operations
        sweeps: Number of sweep runs
        swept: Entries removed by sweeping
        errors: Number of errors
    """

    reads: int = 0
    hits: int = 0
    writes: int = 0
    deletes: int = 0
    sweeps: int = 0
    swept: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @property
    def misses(self) -> int:
        return self.reads - self.hits

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()


class ResourceBackend(ABC):
    """Abstract storage strategy for cached resources.

    Implementations:
    - DurableFileStore: one file per key in a scratch directory, swept by age
    - EphemeralKVStore: base64 strings in a key-value store, never swept

    Reads are local only and report a miss as None. Writes always replace
    the previous entry for the resolved key.
    """

    supports_sweep: bool = False

    def __init__(
        self,
        resolver: KeyResolver,
        config: Optional[StorageConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize backend.

        Args:
            resolver: Identifier to storage key mapping
            config: Storage configuration
            clock: Time source returning epoch seconds
        """
        self.resolver = resolver
        self.config = config or StorageConfig()
        self._clock: Clock = clock or time.time
        self._stats = StorageStats()
        self._sweep_listeners: List[Callable[[int], None]] = []

    def add_sweep_listener(self, listener: Callable[[int], None]) -> None:
        """Register a callback receiving the count of every sweep that removes entries."""
        self._sweep_listeners.append(listener)

    def _notify_swept(self, removed: int) -> None:
        for listener in self._sweep_listeners:
            try:
                listener(removed)
            except Exception as e:
                logger.error(f"Sweep listener failed: {e}")

    def resolve(self, identifier: str) -> str:
        """Resolve identifier to storage key."""
        return self.resolver.resolve(identifier)

    def now(self) -> float:
        """Get current time from the injected clock."""
        return self._clock()

    @abstractmethod
    def get(self, identifier: str) -> Optional[CacheEntry]:
        """Get the cached entry for an identifier.

        Args:
            identifier: Origin identifier

        Returns:
            CacheEntry, or None on a miss
        """
        pass

    @abstractmethod
    def put(self, identifier: str, payload: bytes) -> CacheEntry:
        """Store payload for an identifier, replacing any previous entry.

        Args:
            identifier: Origin identifier
            payload: Resource bytes

        Returns:
            The written entry

        Raises:
            PersistFailure: If the write fails
        """
        pass

    def pre_warm(self, identifier: str, payload: bytes) -> CacheEntry:
        """Store bundled-asset bytes unconditionally.

        Never checks for an existing copy first.

        Args:
            identifier: Bundle path of the asset
            payload: Asset bytes

        Returns:
            The written entry
        """
        return self.put(identifier, payload)

    def sweep(self, now: Optional[float] = None) -> int:
        """Remove entries older than the TTL.

        Args:
            now: Reference time, defaults to the injected clock

        Returns:
            Number of entries removed
        """
        return 0

    @abstractmethod
    def delete(self, identifier: str) -> bool:
        """Delete the entry for an identifier.

        Returns:
            True if deleted
        """
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """Get all storage keys."""
        pass

    def exists(self, identifier: str) -> bool:
        """Check if an entry exists for an identifier."""
        return self.get(identifier) is not None

    def clear(self) -> int:
        """Clear all entries.

        Returns:
            Number cleared
        """
        count = 0
        for key in self.keys():
            if self._delete_key(key):
                count += 1
        return count

    def _delete_key(self, key: str) -> bool:
        """Delete by storage key. Backends override when keys differ from identifiers."""
        return self.delete(key)

    def get_stats(self) -> StorageStats:
        """Get storage statistics."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = StorageStats()

    def __contains__(self, identifier: str) -> bool:
        return self.exists(identifier)

    def __len__(self) -> int:
        return len(self.keys())

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())


__all__ = [
    "ResourceBackend",
    "StorageConfig",
    "StorageStats",
    "Clock",
    "DEFAULT_TTL",
]
