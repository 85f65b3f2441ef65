"""PixCache Errors - Typed Failures for Fetch and Persist.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A cache miss is not an error: backends return None. Everything a caller
can act on is raised as a subclass of PixCacheError so that "origin down"
and "disk full" stay distinguishable from each other.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PixCacheError(Exception):
    """Base exception for all PixCache failures."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class CacheMiss(PixCacheError):
    """No local copy exists for an identifier.

    Backends signal a miss by returning None; this type exists so callers
    that prefer exceptions can raise it themselves.
    """

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"No cached copy of {identifier}", {"identifier": identifier})


class ResourceUnavailable(PixCacheError):
    """The requested resource could not be produced."""

    def __init__(
        self,
        identifier: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.identifier = identifier
        details = dict(details or {})
        details["identifier"] = identifier
        super().__init__(message or f"Resource unavailable: {identifier}", details)


class OriginUnavailable(ResourceUnavailable):
    """The network or bundle read for an identifier failed.

    Attributes:
        origin: Origin kind that failed ("network", "bundle", "file")
        status_code: HTTP status for network origins, when one was received
    """

    def __init__(
        self,
        identifier: str,
        origin: str,
        reason: str,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.origin = origin
        self.reason = reason
        self.status_code = status_code

        details: Dict[str, Any] = {"origin": origin, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        if original_error is not None:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            identifier,
            message=f"{origin} origin unavailable for {identifier}: {reason}",
            details=details,
        )
        if original_error is not None:
            self.__cause__ = original_error


class PersistFailure(PixCacheError):
    """Writing an entry to a backend failed.

    The bytes that could not be written stay reachable on ``payload`` so a
    caller can still use them after a successful fetch.
    """

    def __init__(
        self,
        identifier: str,
        payload: Optional[bytes] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.identifier = identifier
        self.payload = payload

        details: Dict[str, Any] = {"identifier": identifier}
        if original_error is not None:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(f"Failed to persist {identifier}", details)
        if original_error is not None:
            self.__cause__ = original_error


class SweepFailure(PixCacheError):
    """Removing one stale entry failed. Logged, never raised."""

    def __init__(self, path: str, original_error: BaseException):
        self.path = path
        super().__init__(
            f"Failed to sweep {path}: {original_error}",
            {"path": path, "original_error_type": type(original_error).__name__},
        )


__all__ = [
    "PixCacheError",
    "CacheMiss",
    "ResourceUnavailable",
    "OriginUnavailable",
    "PersistFailure",
    "SweepFailure",
]
