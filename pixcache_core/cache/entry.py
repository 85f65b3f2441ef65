"""PixCache Entry - Cached Resource Payload and Freshness.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional


class PayloadKind(Enum):
    """Shape of a stored payload."""

    BYTES = auto()       # Raw resource content
    REFERENCE = auto()   # Remote URL stored as a passthrough marker


@dataclass
class CacheEntry:
    """A single cached resource.

    Attributes:
        key: Storage key resolved from the identifier
        payload: Resource bytes (the URL itself for references)
        stored_at: Creation or overwrite time, epoch seconds
        identifier: Origin identifier the entry was written for
        kind: Payload shape
    """

    key: str
    payload: bytes
    stored_at: float = field(default_factory=time.time)
    identifier: Optional[str] = None
    kind: PayloadKind = PayloadKind.BYTES

    @property
    def size_bytes(self) -> int:
        """Get payload size in bytes."""
        return len(self.payload)

    @property
    def is_reference(self) -> bool:
        """Check if the entry only points at a remote URL."""
        return self.kind == PayloadKind.REFERENCE

    def age(self, now: Optional[float] = None) -> float:
        """Get entry age in seconds.

        Args:
            now: Reference time, defaults to the wall clock

        Returns:
            Seconds since the entry was stored
        """
        if now is None:
            now = time.time()
        return now - self.stored_at

    def is_stale(self, ttl_seconds: float, now: Optional[float] = None) -> bool:
        """Check if the entry is older than the TTL.

        An entry whose age equals the TTL is still fresh.
        """
        return self.age(now) > ttl_seconds

    def checksum(self) -> str:
        """Get payload checksum."""
        return hashlib.md5(self.payload).hexdigest()[:16]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, without the payload.

        Returns:
            Dictionary representation
        """
        return {
            "key": self.key,
            "identifier": self.identifier,
            "kind": self.kind.name,
            "stored_at": self.stored_at,
            "size_bytes": self.size_bytes,
            "checksum": self.checksum(),
        }

    def __repr__(self) -> str:
        return (
            f"CacheEntry(key={self.key!r}, kind={self.kind.name}, "
            f"size={self.size_bytes})"
        )


__all__ = ["CacheEntry", "PayloadKind"]
