"""PixCache KV Store - Ephemeral Key-Value Backend.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

For environments without a writable filesystem. Resources are kept as
base64 strings in a small string key-value store (Redis, or the in-process
MemoryKVClient). The store is given no expiry and carries no timestamps, so
the configured TTL has no effect here: entries are only ever replaced by a
later write, never swept.
"""

from __future__ import annotations

import base64
import binascii
import fnmatch
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Union

from pixcache_core.cache.entry import CacheEntry, PayloadKind
from pixcache_core.cache.keys import IdentityKeyResolver, KeyResolver
from pixcache_core.errors import PersistFailure
from pixcache_core.store.backend import Clock, ResourceBackend, StorageConfig

logger = logging.getLogger(__name__)

Value = Union[str, bytes]

# Not in the base64 alphabet, so never the start of a BYTES value
REFERENCE_PREFIX = "ref:"


def _to_text(value: Value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


@dataclass
class RedisConfig:
    """Redis connection configuration.

    Attributes:
        host: Redis host
        port: Redis port
        db: Redis database number
        password: Redis password
        socket_timeout: Socket timeout
        socket_connect_timeout: Connection timeout
        max_connections: Connection pool size
    """

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    max_connections: int = 10


def connect_redis(config: Optional[RedisConfig] = None) -> Any:
    """Create a Redis client for the KV backend.

    Args:
        config: Redis configuration

    Returns:
        Connected redis.Redis client
    """
    import redis

    config = config or RedisConfig()
    pool = redis.ConnectionPool(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_connect_timeout,
        max_connections=config.max_connections,
        decode_responses=False,
    )
    client = redis.Redis(connection_pool=pool)

    try:
        client.ping()
    except redis.RedisError as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise

    logger.info(f"Connected to Redis at {config.host}:{config.port}")
    return client


class MemoryKVClient:
    """In-process string key-value client.

    Implements the subset of the redis-py client the KV backend uses, with
    the same bytes-in, bytes-out behavior. Lives as long as the process.
    """

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = threading.RLock()

    def get(self, name: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(name)

    def set(self, name: str, value: Value) -> bool:
        if isinstance(value, str):
            value = value.encode("utf-8")
        with self._lock:
            self._data[name] = value
        return True

    def delete(self, *names: str) -> int:
        count = 0
        with self._lock:
            for name in names:
                if self._data.pop(name, None) is not None:
                    count += 1
        return count

    def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None) -> Iterator[bytes]:
        with self._lock:
            names = list(self._data.keys())
        for name in names:
            if match is None or fnmatch.fnmatchcase(name, match):
                yield name.encode("utf-8")

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MemoryKVClient(entries={len(self._data)})"


class EphemeralKVStore(ResourceBackend):
    """Key-value resource backend.

    Keys are the raw identifier (under a namespace prefix). Two payload
    shapes share the same storage primitive:
    - base64 text of the resource bytes (put, pre_warm)
    - the URL behind a marker prefix, as a passthrough (put_reference)

    References are stored as REFERENCE_PREFIX plus the URL, anything else
    is decoded as base64.

    Example:
        store = EphemeralKVStore(connect_redis(RedisConfig(host="redis")))
        store.pre_warm("assets/logo.png", data)
        entry = store.get("assets/logo.png")
    """

    supports_sweep = False

    def __init__(
        self,
        client: Optional[Any] = None,
        config: Optional[StorageConfig] = None,
        resolver: Optional[KeyResolver] = None,
        clock: Optional[Clock] = None,
        prefix: str = "pixcache:",
    ):
        """Initialize KV store.

        Args:
            client: Redis-compatible client, in-process store by default
            config: Storage configuration (TTL is ignored)
            resolver: Key resolver, identity by default
            clock: Time source returning epoch seconds
            prefix: Namespace prefix for stored keys
        """
        super().__init__(resolver or IdentityKeyResolver(), config, clock)
        self.client = client if client is not None else MemoryKVClient()
        self.prefix = prefix
        self._lock = threading.RLock()

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, identifier: str) -> Optional[CacheEntry]:
        """Get entry by identifier.

        Args:
            identifier: Origin identifier

        Returns:
            CacheEntry or None
        """
        key = self.resolve(identifier)
        self._stats.reads += 1

        try:
            raw = self.client.get(self._make_key(key))
        except Exception as e:
            logger.error(f"Error reading {key}: {e}")
            self._stats.record_error(str(e))
            return None

        if raw is None:
            logger.debug(f"Cache miss for {identifier}")
            return None

        text = _to_text(raw)
        if text.startswith(REFERENCE_PREFIX):
            self._stats.hits += 1
            return CacheEntry(
                key=key,
                payload=text[len(REFERENCE_PREFIX):].encode("utf-8"),
                stored_at=0.0,
                identifier=identifier,
                kind=PayloadKind.REFERENCE,
            )

        try:
            payload = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.error(f"Corrupt entry for {identifier}: {e}")
            self._stats.record_error(str(e))
            return None

        self._stats.hits += 1
        return CacheEntry(
            key=key,
            payload=payload,
            stored_at=0.0,
            identifier=identifier,
        )

    def _write(self, identifier: str, text: str, payload: bytes, kind: PayloadKind) -> CacheEntry:
        key = self.resolve(identifier)
        try:
            with self._lock:
                self.client.set(self._make_key(key), text)
                self._stats.writes += 1
        except Exception as e:
            logger.error(f"Error writing {key}: {e}")
            self._stats.record_error(str(e))
            raise PersistFailure(identifier, payload, e)

        return CacheEntry(
            key=key,
            payload=payload,
            stored_at=self.now(),
            identifier=identifier,
            kind=kind,
        )

    def put(self, identifier: str, payload: bytes) -> CacheEntry:
        """Store payload as base64 text.

        Raises:
            PersistFailure: If the client write fails
        """
        text = base64.b64encode(payload).decode("ascii")
        return self._write(identifier, text, payload, PayloadKind.BYTES)

    def put_reference(self, url: str) -> CacheEntry:
        """Store the URL itself as a passthrough marker.

        Args:
            url: Remote URL the consumer can load directly

        Returns:
            Written reference entry
        """
        return self._write(url, REFERENCE_PREFIX + url, url.encode("utf-8"), PayloadKind.REFERENCE)

    def sweep(self, now: Optional[float] = None) -> int:
        """No-op: the store has no timestamps, so nothing is ever stale."""
        return 0

    def delete(self, identifier: str) -> bool:
        """Delete entry.

        Returns:
            True if deleted
        """
        key = self.resolve(identifier)
        try:
            with self._lock:
                deleted = self.client.delete(self._make_key(key)) > 0
                if deleted:
                    self._stats.deletes += 1
                return deleted
        except Exception as e:
            logger.error(f"Error deleting {key}: {e}")
            self._stats.record_error(str(e))
            return False

    def keys(self) -> List[str]:
        """Get all stored keys, without the prefix."""
        prefix_len = len(self.prefix)
        return sorted(
            _to_text(name)[prefix_len:]
            for name in self.client.scan_iter(match=f"{self.prefix}*", count=100)
        )

    def __repr__(self) -> str:
        return f"EphemeralKVStore(client={self.client!r}, prefix={self.prefix!r})"


__all__ = [
    "EphemeralKVStore",
    "MemoryKVClient",
    "RedisConfig",
    "REFERENCE_PREFIX",
    "connect_redis",
]
