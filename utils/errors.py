"""
Error taxonomy for the query layer.

Every error carries an HTTP-like status code so callers can map failures
onto their own transport without inspecting messages.
"""

from typing import Any, Dict, Optional


class QueryLayerError(Exception):
    """Base error for all query layer failures."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status_code,
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class BadRequest(QueryLayerError):
    """Unknown or missing index, type or field name."""

    status_code = 400


class UpstreamUnavailable(QueryLayerError):
    """Elasticsearch could not be reached or rejected the request."""

    status_code = 502


class MappingUnavailable(UpstreamUnavailable):
    """Field mappings for an index are not loaded."""

    status_code = 503


class CursorExpired(QueryLayerError):
    """The scroll context lapsed or was already released."""

    status_code = 410

    def __init__(self, scroll_id: Optional[str], message: Optional[str] = None):
        super().__init__(
            message or "Scroll cursor expired or already released",
            {"scroll_id": scroll_id},
        )
        self.scroll_id = scroll_id


class ScrollCancelled(QueryLayerError):
    """The caller cancelled an export or its deadline passed."""

    status_code = 499
