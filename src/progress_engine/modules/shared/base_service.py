"""
Base Service Foundation

Purpose
-------
Provides the foundational class for progress-engine services. Services
orchestrate domain models, enforce business rules and surface domain events
to their caller.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access through ``ConfigManager``
- Domain-event logging helpers
- Input validation that raises ``ValidationError``

What this class does NOT do:
- Own any persistence (data sources are injected by subclasses)
- Contain curriculum or reward rules

Usage
-----
    class ProgressService(BaseService):
        def __init__(self, data_source, config_manager=None, logger=None):
            super().__init__(config_manager, logger)
            self.data_source = data_source
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional, Type

from progress_engine.core.config.manager import ConfigManager
from progress_engine.core.logging.logger import get_logger
from progress_engine.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from progress_engine.domain.models.base import DomainEvent


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Configuration manager (class or compatible object);
            defaults to ``ConfigManager``
        logger: Structured logger; defaults to one named after the subclass
    """

    def __init__(
        self,
        config_manager: Optional[Type[ConfigManager]] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self._config = config_manager or ConfigManager
        self.log = logger or get_logger(f"{type(self).__module__}.{type(self).__name__}")

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        from progress_engine.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        """
        Log a service error with full context.

        Args:
            operation: Name of the operation that failed
            error: The exception that occurred
            **context: Additional context data
        """
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    def log_domain_events(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            self.log.info(
                f"Domain event: {event.event_name}",
                extra={"event_name": event.event_name, **event.payload},
            )

    def validate_positive_int(self, value: int, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value}")

