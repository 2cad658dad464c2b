"""
Domain exceptions for the GinkoHub Tools API
"""


class StoreError(Exception):
    """Raised when the key-value backend fails."""


class InvalidTargetError(ValueError):
    """Raised when a fetch target URL is missing, malformed or not allowed."""


class UpstreamError(Exception):
    """Raised when an outbound request fails after all retries."""
