"""
Configuration error hierarchy for the progress engine.

Purpose
-------
Provides configuration-specific exceptions with clear error classification,
separate from the structured infrastructure exceptions in
``progress_engine.core.exceptions``.

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (schema/type validation failures)
└── ConfigInitializationError (YAML defaults could not be loaded)
"""

from __future__ import annotations


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     ConfigManager.initialize()
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """
    Raised when a configuration value has the wrong shape.

    This exception is raised when:
    - A TTL is not a positive integer
    - A YAML root object is not a mapping
    """


class ConfigInitializationError(ConfigError):
    """
    Raised when ConfigManager initialization fails.

    This is a critical error: the shipped YAML defaults are part of the
    package, so failing to read them means a broken installation.
    """


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "ConfigInitializationError",
]
