"""Store module - Storage backends for cached resources."""

from pixcache_core.store.backend import (
    ResourceBackend,
    StorageStats,
    StorageConfig,
)
from pixcache_core.store.file import DurableFileStore
from pixcache_core.store.kv import (
    EphemeralKVStore,
    MemoryKVClient,
    RedisConfig,
    connect_redis,
)

__all__ = [
    "ResourceBackend",
    "StorageStats",
    "StorageConfig",
    "DurableFileStore",
    "EphemeralKVStore",
    "MemoryKVClient",
    "RedisConfig",
    "connect_redis",
]
