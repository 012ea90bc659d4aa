"""Error definitions for the feed cache."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Categories of errors that can occur in the cache."""

    SERIALIZATION_ERROR = "serialization_error"
    COMPRESSION_ERROR = "compression_error"
    DECOMPRESSION_ERROR = "decompression_error"
    STORAGE_ERROR = "storage_error"
    CAPACITY_ERROR = "capacity_error"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FeedCacheError(Exception):
    """Base error class for all feed cache errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize base error.

        Args:
            message: Error message
            category: Error category
            severity: Error severity
            details: Optional error details
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()


class SerializationError(FeedCacheError):
    """Raised when a value cannot be serialized to JSON."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message, ErrorCategory.SERIALIZATION_ERROR, ErrorSeverity.MEDIUM, details
        )


class CompressionError(FeedCacheError):
    """Raised by a payload format when encoding fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, ErrorCategory.COMPRESSION_ERROR, ErrorSeverity.LOW, details)


class DecompressionError(FeedCacheError):
    """Raised by a payload format when data cannot be decoded."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message, ErrorCategory.DECOMPRESSION_ERROR, ErrorSeverity.MEDIUM, details
        )


class StorageError(FeedCacheError):
    """Raised by a storage backend when a read or write fails."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, ErrorCategory.STORAGE_ERROR, severity, details)


class QuotaExceededError(StorageError):
    """Raised when a write would exceed the backend's storage quota."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, ErrorSeverity.HIGH, details)


class EntryTooLargeError(FeedCacheError):
    """Raised when a single entry is larger than the whole cache budget."""

    def __init__(self, source_id: str, size: int, budget: int) -> None:
        super().__init__(
            f"Entry for {source_id} is {size} bytes, budget is {budget} bytes",
            ErrorCategory.CAPACITY_ERROR,
            ErrorSeverity.MEDIUM,
            {"source_id": source_id, "size": size, "budget": budget},
        )
        self.source_id = source_id
        self.size = size
        self.budget = budget
