"""PixCache File Store - Durable Scratch-Directory Backend.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional

from pixcache_core.cache.entry import CacheEntry
from pixcache_core.cache.keys import BasenameKeyResolver, KeyResolver
from pixcache_core.errors import PersistFailure, SweepFailure
from pixcache_core.store.backend import Clock, ResourceBackend, StorageConfig

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".pixcache-"
TEMP_SUFFIX = ".tmp"


def _is_temp(name: str) -> bool:
    return name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX)


def default_cache_dir() -> str:
    """Get the default scratch directory."""
    return os.path.join(tempfile.gettempdir(), "pixcache")


class DurableFileStore(ResourceBackend):
    """File-based resource backend.

    Stores each resource as an opaque file in a flat scratch directory.
    There is no header or metadata: staleness is read from the file's
    modification time.

    Features:
    - Lazy directory creation on first write
    - Atomic writes (temp file + rename)
    - Sweep of entries older than the TTL on every read
    - Basename keys by default (same basename, same file)

    Example:
        store = DurableFileStore("/var/cache/pixcache")
        store.put("https://host/img/logo.png", data)
        entry = store.get("https://host/img/logo.png")
    """

    supports_sweep = True

    def __init__(
        self,
        base_path: Optional[str] = None,
        config: Optional[StorageConfig] = None,
        resolver: Optional[KeyResolver] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize file store.

        Args:
            base_path: Scratch directory, created on first write
            config: Storage configuration
            resolver: Key resolver, basename rule by default
            clock: Time source returning epoch seconds
        """
        super().__init__(resolver or BasenameKeyResolver(), config, clock)
        self.base_path = Path(base_path or default_cache_dir())
        self._lock = threading.RLock()

    def _get_path(self, key: str) -> Path:
        """Get file path for key."""
        return self.base_path / key

    def path_for(self, identifier: str) -> Path:
        """Get the file path an identifier is cached under."""
        return self._get_path(self.resolve(identifier))

    def get(self, identifier: str) -> Optional[CacheEntry]:
        """Get entry by identifier.

        Sweeps stale files before looking up, so a stale entry reads as a miss.

        Args:
            identifier: Origin identifier

        Returns:
            CacheEntry or None
        """
        self.sweep()

        key = self.resolve(identifier)
        path = self._get_path(key)

        with self._lock:
            self._stats.reads += 1
            try:
                stat = path.stat()
                payload = path.read_bytes()
            except FileNotFoundError:
                logger.debug(f"Cache miss for {identifier} ({key})")
                return None
            except (OSError, ValueError) as e:
                logger.error(f"Error reading {key}: {e}")
                self._stats.record_error(str(e))
                return None

            self._stats.hits += 1
            return CacheEntry(
                key=key,
                payload=payload,
                stored_at=stat.st_mtime,
                identifier=identifier,
            )

    def put(self, identifier: str, payload: bytes) -> CacheEntry:
        """Store payload.

        Args:
            identifier: Origin identifier
            payload: Resource bytes

        Returns:
            Written entry

        Raises:
            PersistFailure: If the directory or file cannot be written
        """
        key = self.resolve(identifier)
        path = self._get_path(key)
        temp_path = path.with_name(f"{TEMP_PREFIX}{path.name}{TEMP_SUFFIX}")

        try:
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)

                # Atomic write
                with open(temp_path, "wb") as f:
                    f.write(payload)
                os.replace(temp_path, path)

                self._stats.writes += 1
                stored_at = path.stat().st_mtime

        except (OSError, ValueError) as e:
            logger.error(f"Error writing {key}: {e}")
            self._stats.record_error(str(e))
            try:
                temp_path.unlink()
            except (OSError, ValueError):
                pass
            raise PersistFailure(identifier, payload, e)

        logger.debug(f"Stored {identifier} as {key} ({len(payload)} bytes)")
        return CacheEntry(
            key=key,
            payload=payload,
            stored_at=stored_at,
            identifier=identifier,
        )

    def sweep(self, now: Optional[float] = None) -> int:
        """Remove files older than the TTL.

        Best effort: a file that cannot be stat'ed or removed is logged and
        skipped, and the sweep carries on.

        Args:
            now: Reference time, defaults to the injected clock

        Returns:
            Number of files removed
        """
        if now is None:
            now = self.now()
        ttl = self.config.ttl_seconds
        removed = 0

        try:
            candidates = list(self.base_path.iterdir())
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.warning(f"Cannot list {self.base_path} for sweep: {e}")
            return 0

        with self._lock:
            self._stats.sweeps += 1
            for file_path in candidates:
                try:
                    if not file_path.is_file():
                        continue
                    if now - file_path.stat().st_mtime > ttl:
                        file_path.unlink()
                        removed += 1
                except FileNotFoundError:
                    # Removed concurrently
                    continue
                except OSError as e:
                    failure = SweepFailure(str(file_path), e)
                    logger.warning(failure.message)
                    self._stats.record_error(failure.message)

            self._stats.swept += removed

        if removed:
            logger.info(f"Swept {removed} stale entries from {self.base_path}")
            self._notify_swept(removed)
        return removed

    def delete(self, identifier: str) -> bool:
        """Delete entry.

        Args:
            identifier: Origin identifier

        Returns:
            True if deleted
        """
        return self._delete_key(self.resolve(identifier))

    def _delete_key(self, key: str) -> bool:
        path = self._get_path(key)
        try:
            with self._lock:
                path.unlink()
                self._stats.deletes += 1
                return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Error deleting {key}: {e}")
            self._stats.record_error(str(e))
            return False

    def keys(self) -> List[str]:
        """Get all cached keys (file names)."""
        try:
            return sorted(
                p.name
                for p in self.base_path.iterdir()
                if p.is_file() and not _is_temp(p.name)
            )
        except FileNotFoundError:
            return []

    def disk_usage(self) -> int:
        """Get total disk usage.

        Returns:
            Size in bytes
        """
        total = 0
        for key in self.keys():
            try:
                total += self._get_path(key).stat().st_size
            except FileNotFoundError:
                continue
        return total

    def __repr__(self) -> str:
        return f"DurableFileStore(path={self.base_path}, ttl={self.config.ttl})"


__all__ = ["DurableFileStore", "default_cache_dir"]
