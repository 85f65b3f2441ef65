"""PixCache - Image Resource Cache with Origin Fetch.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Sits between code that wants an image (by URL, bundled-asset path or file
path) and the slow places images come from:
- Cached bytes are served when a local copy exists
- Misses are fetched from the origin, persisted, then served
- Bundled assets can be pre-warmed into the cache on demand
- Durable entries older than the TTL are swept on read

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                        PixCache System                          │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌──────────────────────────────────────────────┐              │
    │  │               CacheManager                    │   MANAGER    │
    │  │   fetch_resource / pre_warm_resource          │   LAYER      │
    │  └──────────┬───────────────────────┬───────────┘              │
    │             │                       │                           │
    │  ┌──────────┴──────────┐ ┌─────────┴────────────┐              │
    │  │   Storage Backends  │ │    Origin Fetcher     │             │
    │  │ ┌────────┐ ┌──────┐ │ │ ┌───────┐ ┌────────┐ │   STORAGE /  │
    │  │ │Durable │ │  KV  │ │ │ │Network│ │ Bundle │ │   ORIGIN     │
    │  │ │ files  │ │base64│ │ │ │  GET  │ │  read  │ │   LAYER      │
    │  │ └────────┘ └──────┘ │ │ └───────┘ └────────┘ │              │
    │  └─────────────────────┘ └──────────────────────┘              │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from pixcache_core import CacheManagerConfig, create_cache_manager

    manager = create_cache_manager(CacheManagerConfig(asset_root="assets"))

    # Fetch on miss, serve from cache afterwards
    data = manager.fetch_resource("https://example.com/img/logo.png")

    # Force a bundled asset into the cache
    manager.pre_warm_resource("icons/home.png")

    # Browser-like environment: no filesystem, KV backend
    from pixcache_core import connect_redis
    manager = create_cache_manager(filesystem_available=False, kv_client=connect_redis())
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from pixcache_core.errors import (
    PixCacheError,
    CacheMiss,
    ResourceUnavailable,
    OriginUnavailable,
    PersistFailure,
    SweepFailure,
)
from pixcache_core.cache.entry import CacheEntry, PayloadKind
from pixcache_core.cache.keys import (
    KeyResolver,
    BasenameKeyResolver,
    IdentityKeyResolver,
    HashedKeyResolver,
    resolve_key,
)
from pixcache_core.store.backend import (
    ResourceBackend,
    StorageConfig,
    StorageStats,
)
from pixcache_core.store.file import DurableFileStore
from pixcache_core.store.kv import (
    EphemeralKVStore,
    MemoryKVClient,
    RedisConfig,
    connect_redis,
)
from pixcache_core.origin.fetcher import (
    ResourceType,
    classify_identifier,
    NetworkOrigin,
    BundleOrigin,
    FileOrigin,
    OriginFetcher,
)
from pixcache_core.metrics.collector import (
    MetricsCollector,
    CacheMetrics,
)
from pixcache_core.settings import PixCacheSettings
from pixcache_core.cache.manager import (
    CacheManager,
    CacheManagerConfig,
    RequestState,
    ResourceResult,
    ServedFrom,
    create_cache_manager,
    has_writable_filesystem,
)
from pixcache_core.cache.warmup import (
    CacheWarmer,
    WarmupConfig,
    WarmupStats,
)

__all__ = [
    # Errors
    "PixCacheError",
    "CacheMiss",
    "ResourceUnavailable",
    "OriginUnavailable",
    "PersistFailure",
    "SweepFailure",
    # Entries and keys
    "CacheEntry",
    "PayloadKind",
    "KeyResolver",
    "BasenameKeyResolver",
    "IdentityKeyResolver",
    "HashedKeyResolver",
    "resolve_key",
    # Storage
    "ResourceBackend",
    "StorageConfig",
    "StorageStats",
    "DurableFileStore",
    "EphemeralKVStore",
    "MemoryKVClient",
    "RedisConfig",
    "connect_redis",
    # Origins
    "ResourceType",
    "classify_identifier",
    "NetworkOrigin",
    "BundleOrigin",
    "FileOrigin",
    "OriginFetcher",
    # Metrics
    "MetricsCollector",
    "CacheMetrics",
    # Manager
    "CacheManager",
    "CacheManagerConfig",
    "PixCacheSettings",
    "RequestState",
    "ResourceResult",
    "ServedFrom",
    "create_cache_manager",
    "has_writable_filesystem",
    # Warmup
    "CacheWarmer",
    "WarmupConfig",
    "WarmupStats",
]
