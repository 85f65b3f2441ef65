"""PixCache Warmup - Batch Pre-Warming of Bundled Assets.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, TYPE_CHECKING

from pixcache_core.errors import PixCacheError

if TYPE_CHECKING:
    from pixcache_core.cache.manager import CacheManager

logger = logging.getLogger(__name__)


@dataclass
class WarmupConfig:
    """Configuration for batch pre-warming.

    Attributes:
        max_workers: Parallel workers
        raise_on_failure: Raise the first failure after the batch completes
    """

    max_workers: int = 4
    raise_on_failure: bool = False


@dataclass
class WarmupStats:
    """Pre-warm batch statistics.

    Attributes:
        total_assets: Assets requested
        warmed: Successfully written
        failed: Failed to read or write
        failures: Asset path -> error message
        duration_seconds: Total duration
        started_at: Start time
        completed_at: Completion time
    """

    total_assets: int = 0
    warmed: int = 0
    failed: int = 0
    failures: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        total = self.warmed + self.failed
        return self.warmed / total if total > 0 else 0.0


class CacheWarmer:
    """Pre-warms many bundled assets through a CacheManager.

    Every asset is written unconditionally; existing copies are never
    skipped. Failures are collected per asset instead of stopping the batch.

    Example:
        warmer = CacheWarmer(manager)
        stats = warmer.warm(["icons/home.png", "icons/back.png"])
        if stats.failed:
            log.warning(stats.failures)
    """

    def __init__(
        self,
        manager: "CacheManager",
        config: Optional[WarmupConfig] = None,
    ):
        self.manager = manager
        self.config = config or WarmupConfig()
        self._stats = WarmupStats()
        self._lock = threading.Lock()

    def warm(
        self,
        asset_paths: Iterable[str],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> WarmupStats:
        """Pre-warm a batch of bundled assets.

        Args:
            asset_paths: Bundle paths to pre-warm
            progress_callback: Called with (completed, total)

        Returns:
            Warmup statistics

        Raises:
            PixCacheError: First failure, when raise_on_failure is set
        """
        assets: List[str] = list(dict.fromkeys(asset_paths))
        self._stats = WarmupStats(total_assets=len(assets), started_at=datetime.now())
        first_error: Optional[PixCacheError] = None
        completed = 0

        logger.info(f"Starting pre-warm of {len(assets)} assets")

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {
                executor.submit(self.manager.pre_warm_resource, path): path
                for path in assets
            }
            for future in as_completed(futures):
                path = futures[future]
                try:
                    future.result()
                except PixCacheError as e:
                    logger.error(f"Pre-warm failed for {path}: {e.message}")
                    with self._lock:
                        self._stats.failed += 1
                        self._stats.failures[path] = e.message
                    if first_error is None:
                        first_error = e
                else:
                    with self._lock:
                        self._stats.warmed += 1

                completed += 1
                if progress_callback:
                    progress_callback(completed, len(assets))

        self._stats.completed_at = datetime.now()
        self._stats.duration_seconds = (
            self._stats.completed_at - self._stats.started_at
        ).total_seconds()

        logger.info(
            f"Pre-warm completed: {self._stats.warmed} warmed, "
            f"{self._stats.failed} failed"
        )

        if first_error is not None and self.config.raise_on_failure:
            raise first_error
        return self._stats

    def get_stats(self) -> WarmupStats:
        return self._stats


__all__ = [
    "CacheWarmer",
    "WarmupConfig",
    "WarmupStats",
]
