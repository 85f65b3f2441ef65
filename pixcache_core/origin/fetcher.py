"""PixCache Origin Fetcher - Network, Bundle and File Reads.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from enum import Enum, auto
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import unquote, urlparse

import requests

from pixcache_core.errors import OriginUnavailable

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "pixcache/1.0"


class ResourceType(Enum):
    """Where an identifier's bytes come from."""

    NETWORK = auto()   # http(s) URL
    ASSET = auto()     # Path inside the asset bundle
    FILE = auto()      # file:// URI or absolute filesystem path


def classify_identifier(identifier: str) -> ResourceType:
    """Classify an identifier by origin.

    Args:
        identifier: URL, bundle path or file path

    Returns:
        ResourceType
    """
    scheme = urlparse(identifier).scheme.lower()
    if scheme in ("http", "https"):
        return ResourceType.NETWORK
    if scheme == "file" or os.path.isabs(identifier):
        return ResourceType.FILE
    return ResourceType.ASSET


class Origin(ABC):
    """A source that can produce a resource's bytes."""

    name: str = "origin"

    @abstractmethod
    def read(self, identifier: str) -> bytes:
        """Read resource bytes.

        Args:
            identifier: Resource identifier

        Returns:
            Raw bytes

        Raises:
            OriginUnavailable: If the resource cannot be read
        """
        pass


class NetworkOrigin(Origin):
    """HTTP origin. One GET per call, success is status 200 only."""

    name = "network"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """Initialize network origin.

        Args:
            session: HTTP session, a new one by default
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers: Dict[str, str] = {"User-Agent": user_agent}

    def read(self, identifier: str) -> bytes:
        try:
            response = self.session.get(
                identifier, headers=self.headers, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise OriginUnavailable(identifier, self.name, "timed out", original_error=e)
        except requests.RequestException as e:
            raise OriginUnavailable(identifier, self.name, "request failed", original_error=e)

        if response.status_code != 200:
            raise OriginUnavailable(
                identifier,
                self.name,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        return response.content


class BundleOrigin(Origin):
    """Reads assets shipped under a bundle root directory."""

    name = "bundle"

    def __init__(self, asset_root: Optional[str] = None):
        """Initialize bundle origin.

        Args:
            asset_root: Bundle directory, current directory by default
        """
        self.asset_root = Path(asset_root or os.getcwd()).resolve()

    def locate(self, asset_path: str) -> Path:
        """Get the filesystem path of a bundled asset.

        Raises:
            OriginUnavailable: If the path is malformed or escapes the bundle root
        """
        relative = asset_path.lstrip("/\\")
        try:
            path = (self.asset_root / relative).resolve()
        except ValueError as e:
            raise OriginUnavailable(asset_path, self.name, "invalid path", original_error=e)
        if path != self.asset_root and self.asset_root not in path.parents:
            raise OriginUnavailable(asset_path, self.name, "path outside bundle")
        return path

    def read(self, identifier: str) -> bytes:
        path = self.locate(identifier)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise OriginUnavailable(identifier, self.name, "not found in bundle", original_error=e)
        except (OSError, ValueError) as e:
            raise OriginUnavailable(identifier, self.name, "read failed", original_error=e)


class FileOrigin(Origin):
    """Reads file:// URIs and absolute paths."""

    name = "file"

    def read(self, identifier: str) -> bytes:
        parsed = urlparse(identifier)
        path = unquote(parsed.path) if parsed.scheme == "file" else identifier
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise OriginUnavailable(identifier, self.name, "file not found", original_error=e)
        except (OSError, ValueError) as e:
            raise OriginUnavailable(identifier, self.name, "read failed", original_error=e)


class OriginFetcher:
    """Dispatches origin reads by resource type.

    Example:
        fetcher = OriginFetcher(asset_root="./assets")
        data = fetcher.fetch("https://example.com/logo.png")
        icon = fetcher.fetch_bundled("icons/home.png")
    """

    def __init__(
        self,
        network: Optional[Origin] = None,
        bundle: Optional[Origin] = None,
        file: Optional[Origin] = None,
        asset_root: Optional[str] = None,
    ):
        """Initialize fetcher.

        Args:
            network: Network origin
            bundle: Bundle origin
            file: File origin
            asset_root: Bundle root used when no bundle origin is given
        """
        self.origins: Dict[ResourceType, Origin] = {
            ResourceType.NETWORK: network or NetworkOrigin(),
            ResourceType.ASSET: bundle or BundleOrigin(asset_root),
            ResourceType.FILE: file or FileOrigin(),
        }

    def fetch(self, identifier: str) -> bytes:
        """Read an identifier from its origin.

        Raises:
            OriginUnavailable: If the read fails
        """
        resource_type = classify_identifier(identifier)
        origin = self.origins[resource_type]
        logger.debug(f"Fetching {identifier} from {origin.name} origin")

        try:
            return origin.read(identifier)
        except OriginUnavailable as e:
            logger.error(e.message)
            raise

    def fetch_bundled(self, asset_path: str) -> bytes:
        """Read a bundled asset regardless of how the path looks.

        Raises:
            OriginUnavailable: If the asset is not in the bundle
        """
        return self.origins[ResourceType.ASSET].read(asset_path)

    def __repr__(self) -> str:
        names = ", ".join(f"{t.name.lower()}={o.name}" for t, o in self.origins.items())
        return f"OriginFetcher({names})"


__all__ = [
    "ResourceType",
    "classify_identifier",
    "Origin",
    "NetworkOrigin",
    "BundleOrigin",
    "FileOrigin",
    "OriginFetcher",
    "DEFAULT_USER_AGENT",
]
