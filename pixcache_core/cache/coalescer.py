"""PixCache Coalescer - One Origin Fetch per Identifier.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Concurrent misses for the same identifier share a single fetch-and-persist
run. The first caller does the work; everyone else waits on its result or
its exception.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class InFlightFetch:
    """Tracks one in-progress fetch."""

    event: threading.Event = field(default_factory=threading.Event)
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0


class FetchCoalescer:
    """Shares in-flight fetches between concurrent callers.

    Example:
        coalescer = FetchCoalescer()
        data = coalescer.get_or_fetch(url, lambda: download(url))
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize coalescer.

        Args:
            timeout: Max seconds a waiter blocks on an in-flight fetch
        """
        self._in_flight: Dict[str, InFlightFetch] = {}
        self._lock = threading.Lock()
        self._timeout = timeout

    def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Any],
        on_join: Optional[Callable[[], None]] = None,
    ) -> Any:
        """Join an in-flight fetch for key, or start one.

        Args:
            key: Identifier being fetched
            fetch_fn: Work to run if no fetch is in flight
            on_join: Called when this caller joins an existing fetch

        Returns:
            The shared result

        Raises:
            TimeoutError: If waiting on another caller's fetch times out
            Exception: Whatever fetch_fn raised, for every caller
        """
        with self._lock:
            in_flight = self._in_flight.get(key)
            if in_flight is not None:
                in_flight.waiter_count += 1
                is_initiator = False
                logger.debug(
                    f"Coalescing fetch for {key} (waiters: {in_flight.waiter_count})"
                )
            else:
                in_flight = InFlightFetch()
                self._in_flight[key] = in_flight
                is_initiator = True

        if is_initiator:
            try:
                in_flight.result = fetch_fn()
            except BaseException as e:
                in_flight.error = e
                raise
            finally:
                in_flight.event.set()
                with self._lock:
                    self._in_flight.pop(key, None)
            return in_flight.result

        if on_join is not None:
            on_join()

        if not in_flight.event.wait(timeout=self._timeout):
            logger.error(f"Timeout waiting for in-flight fetch of {key}")
            raise TimeoutError(f"Fetch of {key} timed out after {self._timeout}s")

        if in_flight.error is not None:
            raise in_flight.error
        return in_flight.result

    @property
    def active_fetches(self) -> int:
        """Number of fetches currently in flight."""
        with self._lock:
            return len(self._in_flight)

    def active_keys(self) -> List[str]:
        with self._lock:
            return list(self._in_flight.keys())


__all__ = ["FetchCoalescer", "InFlightFetch"]
