"""A bounded in-memory cache with frequency-based admission, size-aware eviction and expiration."""

__version__ = "0.1.0"