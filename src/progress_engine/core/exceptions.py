"""
Infrastructure exceptions for the progress engine.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
configuration errors, use of closed stores, and malformed data coming back
from the key-value store collaborator.

Design Notes
------------
- All infrastructure exceptions inherit from ``ProgressEngineInfrastructureError``.
- Each exception carries:
  - ``message``: human-readable description
  - ``details``: additional structured context (dict)
  - ``severity``: ``ErrorSeverity`` value for logging/alerting
  - ``is_retryable``: whether the operation can be retried
  - ``error_code``: short, stable identifier for programmatic use
- Transport failures raised by a data source (e.g. ``redis`` connection errors)
  are never wrapped: they propagate to the caller unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal operation (e.g., locked content)
    WARNING = "warning"  # Concerning but handled
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class ProgressEngineInfrastructureError(Exception):
    """
    Base exception for all infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(ProgressEngineInfrastructureError):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class StoreClosedError(ProgressEngineInfrastructureError):
    """
    Raised when a cache or draft store is used after ``close()``.

    Args:
        store: Name of the closed store
        operation: The operation that was attempted
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR

    def __init__(self, store: str, operation: str) -> None:
        self.store = store
        self.operation = operation
        super().__init__(
            f"{store} is closed; cannot {operation}",
            details={"store": store, "operation": operation},
            error_code="STORE_CLOSED",
        )


class CorruptRecordError(ProgressEngineInfrastructureError):
    """
    Raised when a record read from the key-value store cannot be decoded.

    Args:
        key: Storage key of the malformed record
        original_error: The decoding failure
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR

    def __init__(self, key: str, original_error: Exception) -> None:
        self.key = key
        self.original_error = original_error
        super().__init__(
            f"Stored record '{key}' could not be decoded: {original_error}",
            details={
                "key": key,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="CORRUPT_RECORD",
        )

