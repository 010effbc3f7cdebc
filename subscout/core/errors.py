"""Error codes and exception types for SubScout."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "VALID"
    RATE_LIMIT = "RATE"
    SOURCE = "SRC"
    CACHE = "CACHE"
    CONFIGURATION = "CONFIG"


@dataclass
class ErrorResponse:
    """Structured error response."""
    code: str
    message: str
    category: ErrorCategory
    details: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return format_error(self)


class ErrorCodes:
    """Centralized error codes for the application."""

    # Validation Errors (VALID-001 to VALID-099)
    VALID_INVALID_DOMAIN = ErrorResponse(
        code="VALID-001",
        message="Invalid domain format",
        category=ErrorCategory.VALIDATION
    )
    VALID_EMPTY_INPUT = ErrorResponse(
        code="VALID-002",
        message="Input cannot be empty",
        category=ErrorCategory.VALIDATION
    )
    VALID_DOMAIN_TOO_LONG = ErrorResponse(
        code="VALID-003",
        message="Domain name exceeds maximum length (253 characters)",
        category=ErrorCategory.VALIDATION
    )
    VALID_INVALID_CHARACTERS = ErrorResponse(
        code="VALID-004",
        message="Domain contains invalid characters",
        category=ErrorCategory.VALIDATION
    )

    # Rate Limit Errors (RATE-001 to RATE-099)
    RATE_LIMITED = ErrorResponse(
        code="RATE-001",
        message="Too many requests. Please wait before searching again",
        category=ErrorCategory.RATE_LIMIT
    )

    # Source Errors (SRC-001 to SRC-099)
    SRC_CONNECTION_FAILED = ErrorResponse(
        code="SRC-001",
        message="Source request failed",
        category=ErrorCategory.SOURCE
    )
    SRC_TIMEOUT = ErrorResponse(
        code="SRC-002",
        message="Source request timed out",
        category=ErrorCategory.SOURCE
    )
    SRC_BAD_STATUS = ErrorResponse(
        code="SRC-003",
        message="Source returned a non-success status",
        category=ErrorCategory.SOURCE
    )
    SRC_MALFORMED_PAYLOAD = ErrorResponse(
        code="SRC-004",
        message="Source returned a malformed payload",
        category=ErrorCategory.SOURCE
    )

    # Cache Errors (CACHE-001 to CACHE-099)
    CACHE_READ_FAILED = ErrorResponse(
        code="CACHE-001",
        message="Failed to read cache entry",
        category=ErrorCategory.CACHE
    )
    CACHE_WRITE_FAILED = ErrorResponse(
        code="CACHE-002",
        message="Failed to write cache entry",
        category=ErrorCategory.CACHE
    )

    # Configuration Errors (CONFIG-001 to CONFIG-099)
    CONFIG_INVALID = ErrorResponse(
        code="CONFIG-001",
        message="Invalid configuration",
        category=ErrorCategory.CONFIGURATION
    )
    CONFIG_MISSING = ErrorResponse(
        code="CONFIG-002",
        message="Configuration file not found",
        category=ErrorCategory.CONFIGURATION
    )

    @classmethod
    def with_details(cls, error: ErrorResponse, details: str) -> ErrorResponse:
        """Create a copy of an error with additional details."""
        return ErrorResponse(
            code=error.code,
            message=error.message,
            category=error.category,
            details=details
        )


def format_error(error: ErrorResponse) -> str:
    """Format error for display."""
    if error.details:
        return f"[{error.code}] {error.message}: {error.details}"
    return f"[{error.code}] {error.message}"


class SubScoutError(Exception):
    """Base exception carrying a coded ErrorResponse."""

    default_error: ErrorResponse = ErrorCodes.CONFIG_INVALID

    def __init__(self, error: Optional[ErrorResponse] = None, details: Optional[str] = None):
        error = error or self.default_error
        if details:
            error = ErrorCodes.with_details(error, details)
        self.error = error
        super().__init__(format_error(error))

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def kind(self) -> str:
        """Category tag that callers switch on when rendering the error."""
        return self.error.category.value


class ValidationError(SubScoutError):
    """Malformed domain input."""

    default_error = ErrorCodes.VALID_INVALID_DOMAIN


class RateLimitedError(SubScoutError):
    """Caller exceeded its request window."""

    default_error = ErrorCodes.RATE_LIMITED

    def __init__(self, retry_after_ms: int, error: Optional[ErrorResponse] = None):
        self.retry_after_ms = max(0, int(retry_after_ms))
        super().__init__(error, details=f"retry after {self.retry_after_seconds}s")

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds to wait, rounded up."""
        return -(-self.retry_after_ms // 1000)


class SourceFetchError(SubScoutError):
    """Network failure, bad status or malformed payload from one source."""

    default_error = ErrorCodes.SRC_CONNECTION_FAILED

    def __init__(self, source: str, error: Optional[ErrorResponse] = None, details: Optional[str] = None):
        self.source = source
        super().__init__(error, details=f"{source}: {details}" if details else source)


class CacheIOError(SubScoutError):
    """Failure reading or writing the cache backend."""

    default_error = ErrorCodes.CACHE_READ_FAILED


class ConfigError(SubScoutError):
    """Unusable configuration file."""

    default_error = ErrorCodes.CONFIG_INVALID
