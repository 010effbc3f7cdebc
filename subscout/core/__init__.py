"""Core components for SubScout."""

from .config import Config
from .logger import setup_logger, get_logger
from .rate_limiter import RateLimiter, RateLimitDecision
from .domain import CacheEntry, QueryResult, SourceResult
from .errors import (
    ErrorCodes,
    ErrorResponse,
    format_error,
    SubScoutError,
    ValidationError,
    RateLimitedError,
    SourceFetchError,
    CacheIOError,
    ConfigError,
)
from .validation import DomainValidator, validate_domain
from .cache import (
    CacheStore,
    CacheBackend,
    MemoryCacheBackend,
    FileCacheBackend,
    SQLiteCacheBackend,
    cache_key,
    create_backend,
)

__all__ = [
    "Config",
    "setup_logger",
    "get_logger",
    "RateLimiter",
    "RateLimitDecision",
    "CacheEntry",
    "QueryResult",
    "SourceResult",
    "ErrorCodes",
    "ErrorResponse",
    "format_error",
    "SubScoutError",
    "ValidationError",
    "RateLimitedError",
    "SourceFetchError",
    "CacheIOError",
    "ConfigError",
    "DomainValidator",
    "validate_domain",
    "CacheStore",
    "CacheBackend",
    "MemoryCacheBackend",
    "FileCacheBackend",
    "SQLiteCacheBackend",
    "cache_key",
    "create_backend",
]
