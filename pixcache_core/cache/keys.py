"""PixCache Keys - Storage Key Resolution.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

The durable store names files after the identifier's basename, so
``https://a.example/a/logo.png`` and ``https://b.example/b/logo.png`` share
the key ``logo.png`` and overwrite each other. HashedKeyResolver is the
opt-in way out of that.
"""

from __future__ import annotations

import hashlib
import posixpath
from abc import ABC, abstractmethod
from urllib.parse import unquote, urlparse


class KeyResolver(ABC):
    """Maps an origin identifier to a backend storage key."""

    @abstractmethod
    def resolve(self, identifier: str) -> str:
        """Resolve identifier to key.

        Args:
            identifier: URL, bundle path or file path

        Returns:
            Storage key
        """
        pass

    def __call__(self, identifier: str) -> str:
        return self.resolve(identifier)


def _path_of(identifier: str) -> str:
    """Get the path component of a URL or plain path."""
    parsed = urlparse(identifier)
    if parsed.scheme and len(parsed.scheme) > 1:
        return unquote(parsed.path)
    # Plain paths, including Windows drive letters
    return identifier.split("?", 1)[0].split("#", 1)[0].replace("\\", "/")


def _digest(identifier: str) -> str:
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()


def _is_filename(name: str) -> bool:
    """Check that a segment can be used as a file name as-is."""
    return name not in ("", ".", "..") and "\x00" not in name and "\\" not in name


class BasenameKeyResolver(KeyResolver):
    """Key is the last path segment of the identifier.

    Identifiers without a usable segment fall back to a SHA-256 digest of
    the whole identifier.
    """

    def resolve(self, identifier: str) -> str:
        name = posixpath.basename(_path_of(identifier))
        if not _is_filename(name):
            return _digest(identifier)
        return name


class IdentityKeyResolver(KeyResolver):
    """Key is the identifier itself."""

    def resolve(self, identifier: str) -> str:
        return identifier


class HashedKeyResolver(KeyResolver):
    """Collision-free key: digest of the full identifier plus its extension."""

    def resolve(self, identifier: str) -> str:
        _, ext = posixpath.splitext(posixpath.basename(_path_of(identifier)))
        if not _is_filename(ext):
            ext = ""
        return _digest(identifier) + ext.lower()


_basename = BasenameKeyResolver()


def resolve_key(identifier: str) -> str:
    """Resolve identifier with the basename rule."""
    return _basename.resolve(identifier)


__all__ = [
    "KeyResolver",
    "BasenameKeyResolver",
    "IdentityKeyResolver",
    "HashedKeyResolver",
    "resolve_key",
]
