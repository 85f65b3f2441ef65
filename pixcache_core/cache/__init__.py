"""Cache module - Entries, key resolution and pre-warming.

The manager lives in pixcache_core.cache.manager and is exported from the
top-level package.
"""

from pixcache_core.cache.entry import (
    CacheEntry,
    PayloadKind,
)
from pixcache_core.cache.keys import (
    KeyResolver,
    BasenameKeyResolver,
    IdentityKeyResolver,
    HashedKeyResolver,
    resolve_key,
)
from pixcache_core.cache.coalescer import FetchCoalescer
from pixcache_core.cache.warmup import (
    CacheWarmer,
    WarmupConfig,
    WarmupStats,
)

__all__ = [
    "CacheEntry",
    "PayloadKind",
    "KeyResolver",
    "BasenameKeyResolver",
    "IdentityKeyResolver",
    "HashedKeyResolver",
    "resolve_key",
    "FetchCoalescer",
    "CacheWarmer",
    "WarmupConfig",
    "WarmupStats",
]
