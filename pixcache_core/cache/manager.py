"""PixCache Manager - Get-or-Fetch Orchestration.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum, auto
from typing import Any, List, Optional

from pixcache_core.cache.coalescer import FetchCoalescer
from pixcache_core.cache.entry import CacheEntry
from pixcache_core.errors import OriginUnavailable, PersistFailure
from pixcache_core.metrics.collector import CacheMetrics, MetricsCollector, Timer
from pixcache_core.origin.fetcher import (
    DEFAULT_USER_AGENT,
    NetworkOrigin,
    OriginFetcher,
)
from pixcache_core.settings import PixCacheSettings
from pixcache_core.store.backend import (
    DEFAULT_TTL,
    Clock,
    ResourceBackend,
    StorageConfig,
)
from pixcache_core.store.file import DurableFileStore, default_cache_dir
from pixcache_core.store.kv import EphemeralKVStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheManagerConfig:
    """Resource cache configuration. Immutable once constructed.

    Attributes:
        ttl: Staleness threshold for the durable store's sweep; the KV
            store ignores it
        cache_dir: Scratch directory for the durable store
        asset_root: Directory holding bundled assets
        request_timeout: Network GET timeout in seconds
        user_agent: User-Agent for network GETs
        kv_prefix: Namespace prefix for KV keys
        coalesce_fetches: Share one origin fetch between concurrent misses
        coalesce_timeout: Max seconds a coalesced caller waits
    """

    ttl: timedelta = DEFAULT_TTL
    cache_dir: Optional[str] = None
    asset_root: Optional[str] = None
    request_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    kv_prefix: str = "pixcache:"
    coalesce_fetches: bool = True
    coalesce_timeout: float = 30.0

    @property
    def ttl_seconds(self) -> float:
        return self.ttl.total_seconds()

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "CacheManagerConfig":
        """Build configuration from PIXCACHE_* environment variables.

        Recognized: PIXCACHE_TTL_SECONDS, PIXCACHE_CACHE_DIR,
        PIXCACHE_ASSET_ROOT, PIXCACHE_REQUEST_TIMEOUT. Values in env_file
        are read too; the process environment wins.

        Args:
            env_file: Dotenv file to read, None to skip

        Raises:
            pydantic.ValidationError: If a value is malformed or out of range
        """
        settings = PixCacheSettings(_env_file=env_file)
        return cls(
            ttl=timedelta(seconds=settings.ttl_seconds),
            cache_dir=settings.cache_dir or None,
            asset_root=settings.asset_root or None,
            request_timeout=settings.request_timeout,
        )

    def storage_config(self, name: str) -> StorageConfig:
        return StorageConfig(name=name, ttl=self.ttl)


class RequestState(Enum):
    """States of a single resource request."""

    IDLE = auto()
    LOOKUP_PENDING = auto()
    FETCH_PENDING = auto()
    PERSIST_PENDING = auto()
    DONE = auto()
    FAILED = auto()


_TRANSITIONS = {
    RequestState.IDLE: {RequestState.LOOKUP_PENDING},
    RequestState.LOOKUP_PENDING: {RequestState.DONE, RequestState.FETCH_PENDING},
    RequestState.FETCH_PENDING: {RequestState.PERSIST_PENDING, RequestState.FAILED},
    RequestState.PERSIST_PENDING: {RequestState.DONE, RequestState.FAILED},
    RequestState.DONE: set(),
    RequestState.FAILED: set(),
}


class ServedFrom(Enum):
    """Where a request's payload came from."""

    CACHE = auto()
    ORIGIN = auto()


@dataclass
class ResourceRequest:
    """Tracks one request through the lookup/fetch/persist states."""

    identifier: str
    state: RequestState = RequestState.IDLE
    history: List[RequestState] = field(default_factory=lambda: [RequestState.IDLE])

    def transition(self, new_state: RequestState) -> None:
        """Move to a new state.

        Raises:
            ValueError: If the transition is not allowed
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid transition {self.state.name} -> {new_state.name} "
                f"for {self.identifier}"
            )
        self.state = new_state
        self.history.append(new_state)

    @property
    def is_terminal(self) -> bool:
        return self.state in (RequestState.DONE, RequestState.FAILED)


@dataclass
class ResourceResult:
    """Outcome of a successful request."""

    identifier: str
    payload: bytes
    served_from: ServedFrom
    history: List[RequestState]

    @property
    def from_cache(self) -> bool:
        return self.served_from == ServedFrom.CACHE


class CacheManager:
    """Serves resources from a backend, fetching from the origin on a miss.

    The backend is fixed for the manager's lifetime. There are no retries:
    a failed fetch is reported once and nothing is written.

    Example:
        manager = create_cache_manager(CacheManagerConfig(asset_root="assets"))

        data = manager.fetch_resource("https://example.com/logo.png")
        manager.pre_warm_resource("icons/home.png")
    """

    def __init__(
        self,
        backend: ResourceBackend,
        fetcher: Optional[OriginFetcher] = None,
        config: Optional[CacheManagerConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize manager.

        Args:
            backend: Storage backend
            fetcher: Origin fetcher
            config: Manager configuration
            metrics: Metrics collector
        """
        self.config = config or CacheManagerConfig()
        self._backend = backend
        self._fetcher = fetcher or _default_fetcher(self.config)
        self._metrics = metrics or MetricsCollector()
        self._coalescer = (
            FetchCoalescer(timeout=self.config.coalesce_timeout)
            if self.config.coalesce_fetches
            else None
        )
        self._backend.add_sweep_listener(self._metrics.record_swept)

    @property
    def backend(self) -> ResourceBackend:
        return self._backend

    @property
    def fetcher(self) -> OriginFetcher:
        return self._fetcher

    @property
    def ttl(self) -> timedelta:
        return self.config.ttl

    def fetch(self, identifier: str) -> ResourceResult:
        """Get a resource, from cache if present, else from its origin.

        Args:
            identifier: URL, bundle path or file path

        Returns:
            ResourceResult with the payload and where it came from

        Raises:
            OriginUnavailable: If the origin read fails; nothing is cached
            PersistFailure: If the fetched bytes cannot be stored
        """
        request = ResourceRequest(identifier)

        with Timer(self._metrics):
            request.transition(RequestState.LOOKUP_PENDING)
            entry = self._backend.get(identifier)

            if entry is not None and not entry.is_reference:
                request.transition(RequestState.DONE)
                self._metrics.record_hit()
                logger.debug(f"Cache hit for {identifier}")
                return ResourceResult(identifier, entry.payload, ServedFrom.CACHE, request.history)

            self._metrics.record_miss()
            request.transition(RequestState.FETCH_PENDING)

            try:
                if self._coalescer is not None:
                    payload = self._coalescer.get_or_fetch(
                        identifier,
                        lambda: self._fetch_and_persist(identifier),
                        on_join=self._metrics.record_coalesced,
                    )
                else:
                    payload = self._fetch_and_persist(identifier)
            except OriginUnavailable:
                request.transition(RequestState.FAILED)
                raise
            except PersistFailure:
                request.transition(RequestState.PERSIST_PENDING)
                request.transition(RequestState.FAILED)
                raise
            except TimeoutError as e:
                request.transition(RequestState.FAILED)
                raise OriginUnavailable(
                    identifier, "coalesced", "timed out waiting for in-flight fetch",
                    original_error=e,
                )

            request.transition(RequestState.PERSIST_PENDING)
            request.transition(RequestState.DONE)
            return ResourceResult(identifier, payload, ServedFrom.ORIGIN, request.history)

    def _fetch_and_persist(self, identifier: str) -> bytes:
        try:
            payload = self._fetcher.fetch(identifier)
        except OriginUnavailable:
            self._metrics.record_origin_failure()
            raise
        self._metrics.record_origin_fetch()

        try:
            self._backend.put(identifier, payload)
        except PersistFailure as e:
            self._metrics.record_persist_failure()
            logger.error(f"Fetched {identifier} but could not cache it: {e.message}")
            raise

        logger.debug(f"Cached {identifier} from origin ({len(payload)} bytes)")
        return payload

    def fetch_resource(self, identifier: str) -> bytes:
        """Get a resource's bytes.

        Raises:
            OriginUnavailable: If the origin read fails
            PersistFailure: If the fetched bytes cannot be stored; the bytes
                are on the exception's ``payload``
        """
        return self.fetch(identifier).payload

    def pre_warm_resource(self, identifier: str) -> CacheEntry:
        """Force the bundled asset into the cache, overwriting any copy.

        Args:
            identifier: Bundle path of the asset

        Returns:
            The written entry

        Raises:
            OriginUnavailable: If the asset is not in the bundle
            PersistFailure: If the write fails
        """
        try:
            payload = self._fetcher.fetch_bundled(identifier)
        except OriginUnavailable as e:
            logger.error(f"Pre-warm of {identifier} failed: {e.message}")
            raise

        entry = self._backend.pre_warm(identifier, payload)
        self._metrics.record_pre_warm()
        logger.debug(f"Pre-warmed {identifier} ({len(payload)} bytes)")
        return entry

    def sweep(self) -> int:
        """Run the backend's sweep now.

        Removals reach the metrics through the backend's sweep listener,
        as do those of the sweep the durable store runs on every read.

        Returns:
            Number of entries removed
        """
        return self._backend.sweep()

    def invalidate(self, identifier: str) -> bool:
        """Drop the cached copy of an identifier.

        Returns:
            True if an entry was removed
        """
        return self._backend.delete(identifier)

    def get_metrics(self) -> CacheMetrics:
        return self._metrics.get_metrics()

    def __repr__(self) -> str:
        return f"CacheManager(backend={self._backend!r}, ttl={self.config.ttl})"


def _default_fetcher(config: CacheManagerConfig) -> OriginFetcher:
    return OriginFetcher(
        network=NetworkOrigin(timeout=config.request_timeout, user_agent=config.user_agent),
        asset_root=config.asset_root,
    )


def has_writable_filesystem(path: Optional[str] = None) -> bool:
    """Check whether the scratch directory (or its nearest parent) is writable.

    Args:
        path: Directory to check, the default scratch directory if omitted

    Returns:
        True if files can be created there
    """
    candidate = os.path.abspath(path or default_cache_dir())
    while not os.path.exists(candidate):
        parent = os.path.dirname(candidate)
        if parent == candidate:
            return False
        candidate = parent
    if not os.path.isdir(candidate):
        return False

    try:
        with tempfile.TemporaryFile(dir=candidate):
            pass
    except OSError:
        return False
    return True


def create_cache_manager(
    config: Optional[CacheManagerConfig] = None,
    filesystem_available: Optional[bool] = None,
    kv_client: Optional[Any] = None,
    fetcher: Optional[OriginFetcher] = None,
    clock: Optional[Clock] = None,
    metrics: Optional[MetricsCollector] = None,
) -> CacheManager:
    """Build a manager with the backend the environment supports.

    The capability check runs once, here. Call this from the composition
    root and pass the manager to consumers.

    Args:
        config: Manager configuration
        filesystem_available: Skip the capability check and use this answer
        kv_client: Redis-compatible client for the KV backend
        fetcher: Origin fetcher
        clock: Time source for the backend
        metrics: Metrics collector

    Returns:
        CacheManager
    """
    config = config or CacheManagerConfig()
    if filesystem_available is None:
        filesystem_available = has_writable_filesystem(config.cache_dir)

    backend: ResourceBackend
    if filesystem_available:
        backend = DurableFileStore(
            config.cache_dir,
            config=config.storage_config("durable"),
            clock=clock,
        )
    else:
        backend = EphemeralKVStore(
            kv_client,
            config=config.storage_config("ephemeral"),
            clock=clock,
            prefix=config.kv_prefix,
        )

    logger.info(f"Resource cache using {backend!r}")
    return CacheManager(backend, fetcher=fetcher, config=config, metrics=metrics)


__all__ = [
    "CacheManager",
    "CacheManagerConfig",
    "RequestState",
    "ResourceRequest",
    "ResourceResult",
    "ServedFrom",
    "create_cache_manager",
    "has_writable_filesystem",
]
