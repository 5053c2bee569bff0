"""
Domain exceptions for the progress engine.

Purpose
-------
Define the structured, domain-specific exception hierarchy raised by the
progress service, the retry-rights state machine and the curriculum helpers.
The presentation layer translates these into learner-facing messages.

Design Notes
------------
- All domain exceptions inherit from ``ProgressEngineError``.
- ``NotFoundError`` is surfaced to the caller and never retried here.
- ``LockedContentError`` and ``RetryExhaustedError`` are user-correctable:
  the engine refuses the mutation without touching any cached state.
- Failures raised by a data-source collaborator are *not* wrapped in these
  types; they propagate unchanged.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from progress_engine.core.exceptions import ErrorSeverity


class ProgressEngineError(Exception):
    """
    Base exception for all domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ProgressEngineError(
        ...     "Mission cannot be started",
        ...     {"mission_id": "S2M1"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False
    USER_CORRECTABLE: bool = False

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


class NotFoundError(ProgressEngineError):
    """
    Raised when an entity id is unknown to the data source.

    Args:
        resource_type: Type of resource (e.g., "Mission", "Bite")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class LockedContentError(ProgressEngineError):
    """
    Raised when a mutation targets a locked mission or stage.

    Args:
        entity_id: Id of the locked node (e.g. "S2M1")
        blocking_id: Id of the predecessor that must be completed first
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    USER_CORRECTABLE = True

    def __init__(self, entity_id: str, blocking_id: Optional[str] = None) -> None:
        self.entity_id = entity_id
        self.blocking_id = blocking_id
        message = f"{entity_id} is locked"
        if blocking_id:
            message += f": complete {blocking_id} first"
        super().__init__(
            message,
            details={"entity_id": entity_id, "blocking_id": blocking_id},
            error_code="CONTENT_LOCKED",
        )


class RetryExhaustedError(ProgressEngineError):
    """
    Raised when an attempt is made while ``can_retry`` is false.

    Args:
        mission_id: Mission whose retry rights are exhausted or inactive
        retry_attempts: Attempts already consumed
        max_retries: Policy ceiling
        reason: Why no retry is available right now
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    USER_CORRECTABLE = True

    def __init__(
        self,
        mission_id: str,
        retry_attempts: int,
        max_retries: int,
        reason: str = "no active retry right",
    ) -> None:
        self.mission_id = mission_id
        self.retry_attempts = retry_attempts
        self.max_retries = max_retries
        self.reason = reason
        super().__init__(
            f"Cannot retry {mission_id}: {reason} ({retry_attempts}/{max_retries} attempts used)",
            details={
                "mission_id": mission_id,
                "retry_attempts": retry_attempts,
                "max_retries": max_retries,
                "reason": reason,
            },
            error_code="RETRY_EXHAUSTED",
        )


class InvalidTransitionError(ProgressEngineError):
    """
    Raised when a retry-rights transition is not allowed from the current state.

    Args:
        action: The attempted transition (e.g. "convert_provisional")
        state: Effective state the transition was attempted from
        reason: Optional explanation
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, state: str, reason: Optional[str] = None) -> None:
        self.action = action
        self.state = state
        self.reason = reason
        message = f"Cannot {action} from state '{state}'"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            details={"action": action, "state": state, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


class ValidationError(ProgressEngineError):
    """
    Raised when caller input fails validation (malformed ids, bad options).

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    USER_CORRECTABLE = True

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


# Utility functions for exception handling patterns


def is_user_correctable(exc: Exception) -> bool:
    """True for errors the learner can resolve (locked content, exhausted retries)."""
    return isinstance(exc, ProgressEngineError) and exc.USER_CORRECTABLE


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Unknown exceptions (including data-source failures) default to ERROR.
    """
    severity = getattr(exc, "severity", None)
    if isinstance(severity, ErrorSeverity):
        return severity
    return ErrorSeverity.ERROR
