"""Tests for CacheManager.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import hashlib
import threading
import time
from datetime import timedelta

import pytest
from pydantic import ValidationError

from pixcache_core.cache.manager import (
    CacheManager,
    CacheManagerConfig,
    RequestState,
    ResourceRequest,
    ServedFrom,
    create_cache_manager,
    has_writable_filesystem,
)
from pixcache_core.errors import OriginUnavailable, PersistFailure, ResourceUnavailable
from pixcache_core.origin.fetcher import NetworkOrigin, OriginFetcher
from pixcache_core.store.file import DurableFileStore
from pixcache_core.store.kv import EphemeralKVStore, MemoryKVClient

from conftest import FakeResponse

URL = "https://host/x.png"


class TestFetchResource:
    """Tests for get-or-fetch."""

    def test_miss_then_hit(self, manager, session):
        """Test a fetched resource is served from cache once the origin is down."""
        session.routes[URL] = FakeResponse(200, bytes([9, 9]))

        assert manager.fetch_resource(URL) == bytes([9, 9])

        session.go_down()
        assert manager.fetch_resource(URL) == bytes([9, 9])
        assert session.calls == [URL]

    def test_origin_failure_not_cached(self, manager, session):
        """Test a 404 fails and leaves nothing behind."""
        missing = "https://host/missing.png"

        with pytest.raises(OriginUnavailable) as exc_info:
            manager.fetch_resource(missing)

        assert isinstance(exc_info.value, ResourceUnavailable)
        assert exc_info.value.status_code == 404
        assert manager.backend.get(missing) is None
        assert manager.backend.keys() == []

    def test_failure_not_retried(self, manager, session):
        """Test each failed request makes exactly one origin call."""
        with pytest.raises(OriginUnavailable):
            manager.fetch_resource("https://host/missing.png")
        with pytest.raises(OriginUnavailable):
            manager.fetch_resource("https://host/missing.png")
        assert len(session.calls) == 2

    def test_state_history(self, manager, session):
        """Test miss and hit walk the expected states."""
        session.routes[URL] = FakeResponse(200, b"data")

        miss = manager.fetch(URL)
        assert miss.served_from == ServedFrom.ORIGIN
        assert miss.history == [
            RequestState.IDLE,
            RequestState.LOOKUP_PENDING,
            RequestState.FETCH_PENDING,
            RequestState.PERSIST_PENDING,
            RequestState.DONE,
        ]

        hit = manager.fetch(URL)
        assert hit.from_cache
        assert hit.history == [RequestState.IDLE, RequestState.LOOKUP_PENDING, RequestState.DONE]

    def test_asset_identifier_reads_bundle(self, manager, session):
        """Test a bundle path on a miss reads the bundle, not the network."""
        assert manager.fetch_resource("icons/home.png") == b"\x89PNG-home"
        assert session.calls == []

    def test_stale_entry_refetched(self, manager, session, clock):
        """Test an entry older than the TTL is fetched again."""
        session.routes[URL] = FakeResponse(200, b"v1")
        manager.fetch_resource(URL)

        clock.advance(timedelta(days=8).total_seconds())
        session.routes[URL] = FakeResponse(200, b"v2")

        assert manager.fetch_resource(URL) == b"v2"
        assert len(session.calls) == 2

    def test_persist_failure_propagates(self, tmp_path, fetcher, session):
        """Test a failed write surfaces as PersistFailure carrying the bytes."""
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")
        manager = CacheManager(DurableFileStore(str(blocker)), fetcher=fetcher)
        session.routes[URL] = FakeResponse(200, b"data")

        with pytest.raises(PersistFailure) as exc_info:
            manager.fetch_resource(URL)

        assert exc_info.value.payload == b"data"
        assert manager.get_metrics().persist_failures == 1

    def test_metrics(self, manager, session):
        """Test hits, misses and failures are counted."""
        session.routes[URL] = FakeResponse(200, b"data")
        manager.fetch_resource(URL)
        manager.fetch_resource(URL)
        with pytest.raises(OriginUnavailable):
            manager.fetch_resource("https://host/missing.png")

        metrics = manager.get_metrics()
        assert metrics.hits == 1
        assert metrics.misses == 2
        assert metrics.origin_fetches == 1
        assert metrics.origin_failures == 1

    def test_nul_byte_url_cached_under_digest(self, manager, session):
        """Test a percent-encoded NUL in the URL path is fetched and cached."""
        url = "https://host/a%00.png"
        session.routes[url] = FakeResponse(200, b"data")

        assert manager.fetch_resource(url) == b"data"
        session.go_down()
        assert manager.fetch_resource(url) == b"data"
        assert manager.backend.keys() == [hashlib.sha256(url.encode("utf-8")).hexdigest()]

    def test_inline_sweep_reaches_metrics(self, manager, session, clock):
        """Test entries swept during a read are counted once in the metrics."""
        session.routes[URL] = FakeResponse(200, b"v1")
        manager.fetch_resource(URL)
        clock.advance(timedelta(days=8).total_seconds())

        manager.fetch_resource(URL)

        assert manager.backend.get_stats().swept == 1
        assert manager.get_metrics().swept == 1

    def test_explicit_sweep_counted_once(self, manager, session, clock):
        session.routes[URL] = FakeResponse(200, b"v1")
        manager.fetch_resource(URL)
        clock.advance(timedelta(days=8).total_seconds())

        assert manager.sweep() == 1
        assert manager.get_metrics().swept == 1

    def test_invalidate(self, manager, session):
        session.routes[URL] = FakeResponse(200, b"data")
        manager.fetch_resource(URL)

        assert manager.invalidate(URL)
        manager.fetch_resource(URL)
        assert len(session.calls) == 2


class TestCoalescing:
    """Tests for in-flight fetch sharing."""

    def test_concurrent_misses_share_one_fetch(self, manager, session):
        """Test two concurrent misses for one URL make one origin call."""
        session.routes[URL] = FakeResponse(200, b"shared")
        session.release.clear()
        results = []

        def worker():
            results.append(manager.fetch_resource(URL))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        threads[0].start()
        assert session.entered.wait(timeout=5.0)
        threads[1].start()

        deadline = time.time() + 5.0
        while manager.get_metrics().coalesced < 1 and time.time() < deadline:
            time.sleep(0.01)

        session.release.set()
        for t in threads:
            t.join(timeout=5.0)

        assert results == [b"shared", b"shared"]
        assert session.calls == [URL]

    def test_failure_reaches_all_waiters(self, manager, session):
        """Test an origin failure is raised to every coalesced caller."""
        session.release.clear()
        errors = []

        def worker():
            try:
                manager.fetch_resource("https://host/missing.png")
            except OriginUnavailable as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        threads[0].start()
        assert session.entered.wait(timeout=5.0)
        threads[1].start()

        deadline = time.time() + 5.0
        while manager.get_metrics().coalesced < 1 and time.time() < deadline:
            time.sleep(0.01)

        session.release.set()
        for t in threads:
            t.join(timeout=5.0)

        assert len(errors) == 2
        assert len(session.calls) == 1
        assert manager.backend.keys() == []


class TestPreWarm:
    """Tests for pre-warming."""

    def test_pre_warm_writes_asset(self, manager, session):
        """Test a pre-warmed asset is then served without an origin call."""
        entry = manager.pre_warm_resource("icons/home.png")

        assert entry.key == "home.png"
        assert manager.fetch("icons/home.png").from_cache
        assert session.calls == []

    def test_pre_warm_idempotent(self, manager):
        """Test pre-warming twice leaves the same observable state."""
        manager.pre_warm_resource("icons/home.png")
        first = (manager.backend.keys(), manager.backend.get("icons/home.png").payload)
        manager.pre_warm_resource("icons/home.png")
        second = (manager.backend.keys(), manager.backend.get("icons/home.png").payload)

        assert first == second

    def test_pre_warm_overwrites(self, manager):
        """Test pre-warm replaces an existing copy without checking it."""
        manager.backend.put("icons/home.png", b"outdated")
        manager.pre_warm_resource("icons/home.png")

        assert manager.backend.get("icons/home.png").payload == b"\x89PNG-home"

    def test_pre_warm_missing_asset_raises(self, manager):
        """Test bundle read errors propagate and nothing is written."""
        with pytest.raises(OriginUnavailable) as exc_info:
            manager.pre_warm_resource("icons/nope.png")

        assert exc_info.value.reason == "not found in bundle"
        assert manager.backend.keys() == []


class TestRequestState:
    """Tests for the request state machine."""

    def test_invalid_transition(self):
        request = ResourceRequest("x")
        with pytest.raises(ValueError):
            request.transition(RequestState.DONE)

    def test_terminal_states(self):
        request = ResourceRequest("x")
        request.transition(RequestState.LOOKUP_PENDING)
        request.transition(RequestState.FETCH_PENDING)
        request.transition(RequestState.FAILED)

        assert request.is_terminal
        with pytest.raises(ValueError):
            request.transition(RequestState.FETCH_PENDING)


class TestFactory:
    """Tests for backend selection and configuration."""

    def test_filesystem_selects_durable_store(self, cache_dir):
        config = CacheManagerConfig(cache_dir=str(cache_dir), ttl=timedelta(hours=1))
        manager = create_cache_manager(config, filesystem_available=True)

        assert isinstance(manager.backend, DurableFileStore)
        assert manager.backend.config.ttl == timedelta(hours=1)

    def test_no_filesystem_selects_kv_store(self):
        client = MemoryKVClient()
        manager = create_cache_manager(filesystem_available=False, kv_client=client)

        assert isinstance(manager.backend, EphemeralKVStore)
        assert manager.backend.client is client

    def test_capability_check(self, cache_dir):
        """Test the factory checks the filesystem when not told."""
        manager = create_cache_manager(CacheManagerConfig(cache_dir=str(cache_dir)))
        assert isinstance(manager.backend, DurableFileStore)

    def test_has_writable_filesystem(self, tmp_path):
        assert has_writable_filesystem(str(tmp_path / "not" / "yet"))

        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")
        assert not has_writable_filesystem(str(blocker / "cache"))

    def test_config_immutable(self):
        config = CacheManagerConfig()
        assert config.ttl == timedelta(days=7)
        with pytest.raises(AttributeError):
            config.ttl = timedelta(0)

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PIXCACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("PIXCACHE_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("PIXCACHE_REQUEST_TIMEOUT", "2.5")

        config = CacheManagerConfig.from_env(env_file=None)

        assert config.ttl_seconds == 60
        assert config.cache_dir == str(tmp_path)
        assert config.request_timeout == 2.5
        assert config.asset_root is None

    def test_from_env_defaults(self, monkeypatch):
        for name in ("TTL_SECONDS", "CACHE_DIR", "ASSET_ROOT", "REQUEST_TIMEOUT"):
            monkeypatch.delenv(f"PIXCACHE_{name}", raising=False)

        assert CacheManagerConfig.from_env(env_file=None) == CacheManagerConfig()

    def test_from_env_dotenv_file(self, tmp_path, monkeypatch):
        """Test a dotenv file is read and the process environment wins."""
        env_file = tmp_path / ".env"
        env_file.write_text("PIXCACHE_TTL_SECONDS=120\nPIXCACHE_ASSET_ROOT=/srv/assets\n")
        monkeypatch.setenv("PIXCACHE_TTL_SECONDS", "30")
        monkeypatch.delenv("PIXCACHE_ASSET_ROOT", raising=False)

        config = CacheManagerConfig.from_env(env_file=str(env_file))

        assert config.ttl_seconds == 30
        assert config.asset_root == "/srv/assets"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("TTL_SECONDS", "soon"),
            ("TTL_SECONDS", "inf"),
            ("TTL_SECONDS", "nan"),
            ("TTL_SECONDS", "-1"),
            ("TTL_SECONDS", "1e300"),
            ("REQUEST_TIMEOUT", "0"),
            ("REQUEST_TIMEOUT", "inf"),
        ],
    )
    def test_from_env_invalid(self, monkeypatch, name, value):
        """Test malformed or out-of-range values raise a validation error."""
        monkeypatch.setenv(f"PIXCACHE_{name}", value)

        with pytest.raises(ValidationError):
            CacheManagerConfig.from_env(env_file=None)


class TestKVManager:
    """Tests for the manager over the key-value backend."""

    def test_fetch_and_serve(self, session, asset_root):
        fetcher = OriginFetcher(network=NetworkOrigin(session=session), asset_root=str(asset_root))
        manager = create_cache_manager(filesystem_available=False, fetcher=fetcher)
        session.routes[URL] = FakeResponse(200, bytes([9, 9]))

        assert manager.fetch_resource(URL) == bytes([9, 9])
        session.go_down()
        assert manager.fetch_resource(URL) == bytes([9, 9])

    def test_reference_entry_refreshed_with_bytes(self, session, asset_root):
        """Test a passthrough reference does not count as cached bytes."""
        fetcher = OriginFetcher(network=NetworkOrigin(session=session), asset_root=str(asset_root))
        manager = create_cache_manager(filesystem_available=False, fetcher=fetcher)
        manager.backend.put_reference(URL)
        session.routes[URL] = FakeResponse(200, b"real")

        result = manager.fetch(URL)
        assert result.served_from == ServedFrom.ORIGIN
        assert manager.backend.get(URL).payload == b"real"

    def test_ttl_ignored(self, session, asset_root, clock):
        """Test KV entries outlive any TTL."""
        fetcher = OriginFetcher(network=NetworkOrigin(session=session), asset_root=str(asset_root))
        manager = create_cache_manager(
            CacheManagerConfig(ttl=timedelta(0)),
            filesystem_available=False,
            fetcher=fetcher,
            clock=clock,
        )
        manager.pre_warm_resource("icons/home.png")
        clock.advance(1e6)

        assert manager.sweep() == 0
        assert manager.fetch("icons/home.png").from_cache


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
