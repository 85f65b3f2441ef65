"""Shared fixtures for PixCache tests.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import threading
import time
from typing import Dict, List, Optional, Union

import pytest
import requests

from pixcache_core.cache.manager import CacheManager, CacheManagerConfig
from pixcache_core.origin.fetcher import NetworkOrigin, OriginFetcher
from pixcache_core.store.file import DurableFileStore


class FakeClock:
    """Settable time source."""

    def __init__(self, now: Optional[float] = None):
        self.now = time.time() if now is None else now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b""):
        self.status_code = status_code
        self.content = content


class FakeSession:
    """Stands in for requests.Session.

    Routes map a URL to a response or to an exception to raise. Unknown URLs
    get a 404.
    """

    def __init__(self, routes: Optional[Dict[str, Union[FakeResponse, Exception]]] = None):
        self.routes = dict(routes or {})
        self.calls: List[str] = []
        self.release = threading.Event()
        self.release.set()
        self.entered = threading.Event()

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        self.entered.set()
        self.release.wait(timeout=5.0)
        route = self.routes.get(url, FakeResponse(404))
        if isinstance(route, Exception):
            raise route
        return route

    def go_down(self) -> None:
        """Make every URL fail with a connection error."""
        for url in list(self.routes):
            self.routes[url] = requests.ConnectionError("origin down")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def asset_root(tmp_path):
    root = tmp_path / "assets"
    (root / "icons").mkdir(parents=True)
    (root / "icons" / "home.png").write_bytes(b"\x89PNG-home")
    (root / "icons" / "back.png").write_bytes(b"\x89PNG-back")
    return root


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "scratch"


@pytest.fixture
def fetcher(session, asset_root):
    return OriginFetcher(network=NetworkOrigin(session=session), asset_root=str(asset_root))


@pytest.fixture
def manager(cache_dir, fetcher, clock):
    config = CacheManagerConfig(cache_dir=str(cache_dir))
    store = DurableFileStore(
        str(cache_dir),
        config=config.storage_config("durable"),
        clock=clock,
    )
    return CacheManager(store, fetcher=fetcher, config=config)
