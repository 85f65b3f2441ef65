"""Origin module - Sources consulted on a cache miss."""

from pixcache_core.origin.fetcher import (
    ResourceType,
    classify_identifier,
    Origin,
    NetworkOrigin,
    BundleOrigin,
    FileOrigin,
    OriginFetcher,
)

__all__ = [
    "ResourceType",
    "classify_identifier",
    "Origin",
    "NetworkOrigin",
    "BundleOrigin",
    "FileOrigin",
    "OriginFetcher",
]
