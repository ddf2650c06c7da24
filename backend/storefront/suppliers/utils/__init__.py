"""Supplier utilities for rate limiting, retries and normalization.

The normalizer depends on ``storefront.suppliers.base`` and is imported
from its own module to keep this package free of import cycles.
"""

from .rate_limiter import RateLimiterStats, SlidingWindowRateLimiter
from .retry import transport_retry

__all__ = [
    # Rate limiting
    "RateLimiterStats",
    "SlidingWindowRateLimiter",
    # Retry decorators
    "transport_retry",
]
