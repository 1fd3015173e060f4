"""
Error types for request body limits.
"""

from types import MappingProxyType
from typing import Optional

REQUEST_TOO_LARGE_MESSAGE = "HTTP request too large"

# Body written with the 413 response. Read-only; callers get a copy.
REQUEST_TOO_LARGE_PAYLOAD = MappingProxyType({"error": "request too large"})


class RequestTooLargeError(Exception):
    """
    Raised by a bounded reader once the request body went over its limit.

    By the time this is raised the 413 response has already been written,
    so handlers should stop processing rather than respond themselves.
    """

    def __init__(self, limit: Optional[int] = None):
        super().__init__(REQUEST_TOO_LARGE_MESSAGE)
        self.limit = limit


def too_large_payload() -> dict:
    """Fresh copy of the 413 response body."""
    return dict(REQUEST_TOO_LARGE_PAYLOAD)
