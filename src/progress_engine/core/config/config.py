"""
Static configuration management for the progress engine.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set once when the engine starts.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Tunable policy tables such as cache TTLs (handled by ConfigManager)
- Runtime configuration changes (except safe reload)
- Secrets management (use environment variables)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Auto-loads on module import via Config.validate()
- Metrics track which values came from environment vs defaults
- Directory paths relative to the working directory for portability

Configuration Categories
------------------------
1. Environment: environment type, debug mode
2. Logging: level, JSON output, colors, optional file sink
3. Cache: in-memory capacity bound
4. Retry policy: max retries, provisional retry window
5. Key-value store: Redis URL and key namespace

Dependencies
------------
- python-dotenv: Environment variable loading
- pathlib: Cross-platform path handling
- logging: Basic logging (bootstrap only)

Environment Variables
---------------------
All optional (with defaults):
- ENVIRONMENT: Environment type (default: development)
- DEBUG: Debug mode flag (default: False)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON / LOG_COLORS / LOG_TO_FILE / LOGS_DIR: logging sinks
- CACHE_MAX_ENTRIES: capacity bound of the cache store (default: 0 = unbounded)
- RETRY_MAX_ATTEMPTS: retry policy constant (default: 3)
- PROVISIONAL_RETRY_HOURS: provisional retry window (default: 48)
- REDIS_URL / REDIS_KEY_PREFIX: key-value store collaborator
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# ============================================================================
# Enums
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            logging.warning(
                "Unknown environment '%s', defaulting to development", value
            )
            return cls.DEVELOPMENT


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, default: Any) -> None:
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the progress engine.

    All configuration values are loaded from environment variables with
    sensible defaults. Invalid values fall back to the default and are
    recorded in the load metrics instead of failing the import.

    Usage
    -----
    >>> Config.RETRY_MAX_ATTEMPTS
    3
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    >>> summary = Config.get_config_summary()
    """

    # =========================================================================
    # Internal State
    # =========================================================================

    _metrics: Optional[_ConfigLoadMetrics] = None
    _validated: bool = False

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOG_TO_FILE: bool = False
    LOGS_DIR: Path = Path("logs")

    # =========================================================================
    # Cache Configuration
    # =========================================================================

    CACHE_MAX_ENTRIES: int = 0  # 0 disables the capacity bound

    # =========================================================================
    # Retry Policy
    # =========================================================================

    RETRY_MAX_ATTEMPTS: int = 3
    PROVISIONAL_RETRY_HOURS: int = 48

    # =========================================================================
    # Key-Value Store
    # =========================================================================

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "gpslab:progress"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    _TRUE = frozenset({"true", "yes", "1", "on"})
    _FALSE = frozenset({"false", "no", "0", "off"})

    @classmethod
    def _metrics_tracker(cls) -> _ConfigLoadMetrics:
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()
        return cls._metrics

    @classmethod
    def _reject(cls, key: str, reason: str) -> None:
        logging.warning(reason)
        cls._metrics_tracker().record_validation_error(key, reason)

    @classmethod
    def _raw(cls, key: str, default: Any) -> Optional[str]:
        """Return the raw environment value, recording a default hit when unset."""
        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics_tracker().record_env_load(key, False, default)
        return raw_value

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Parse a bounded integer; anything unparsable or out of range yields ``default``.

        Example
        -------
        >>> Config._safe_int("RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=20)
        3
        """
        raw_value = cls._raw(key, default)
        if raw_value is None:
            return default

        try:
            value = int(raw_value)
        except ValueError:
            cls._reject(key, f"{key}='{raw_value}' is not a valid integer, using default {default}")
            return default

        if (min_val is not None and value < min_val) or (max_val is not None and value > max_val):
            cls._reject(key, f"{key}={value} is outside [{min_val}, {max_val}], using default {default}")
            return default

        cls._metrics_tracker().record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_optional_bool(cls, key: str, default: Optional[bool] = None) -> Optional[bool]:
        """Parse true/false, yes/no, 1/0, on/off (case-insensitive); unset gives ``default``."""
        raw_value = cls._raw(key, default)
        if raw_value is None:
            return default

        normalized = raw_value.strip().lower()
        if normalized not in cls._TRUE | cls._FALSE:
            cls._reject(key, f"{key}='{raw_value}' is not a valid boolean, using default {default}")
            return default

        cls._metrics_tracker().record_env_load(key, True, default)
        return normalized in cls._TRUE

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        return bool(cls._safe_optional_bool(key, default))

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        raw_value = cls._raw(key, default)
        if raw_value is None:
            return default
        cls._metrics_tracker().record_env_load(key, True, default)
        return raw_value

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import, and again by tests that
        patch the environment.
        """
        metrics = cls._metrics_tracker()

        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.DEBUG = cls._safe_bool("DEBUG", False)

        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)
        cls.LOG_TO_FILE = cls._safe_bool("LOG_TO_FILE", False)
        cls.LOGS_DIR = Path(cls._safe_str("LOGS_DIR", "logs"))

        cls.CACHE_MAX_ENTRIES = cls._safe_int(
            "CACHE_MAX_ENTRIES", 0, min_val=0, max_val=1_000_000
        )

        cls.RETRY_MAX_ATTEMPTS = cls._safe_int(
            "RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=20
        )
        cls.PROVISIONAL_RETRY_HOURS = cls._safe_int(
            "PROVISIONAL_RETRY_HOURS", 48, min_val=1, max_val=24 * 30
        )

        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_KEY_PREFIX = cls._safe_str("REDIS_KEY_PREFIX", "gpslab:progress")

        metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load and validate configuration values on startup.

        Raises
        ------
        ValueError
            If the configuration is unusable in production.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if cls.LOG_LEVEL.upper() not in valid_log_levels:
            logger.warning("Invalid LOG_LEVEL '%s', using INFO", cls.LOG_LEVEL)
            cls.LOG_LEVEL = "INFO"

        if cls.is_production():
            if "localhost" in cls.REDIS_URL:
                logger.warning(
                    "Production environment using localhost Redis - "
                    "this may be incorrect"
                )
            if cls.DEBUG:
                logger.warning("DEBUG mode enabled in production!")
            if not cls.REDIS_KEY_PREFIX:
                raise ValueError("REDIS_KEY_PREFIX must not be empty in production")

        cls._validated = True

        if cls._metrics and cls._metrics.validation_errors:
            logger.warning(
                "Configuration warnings: %s", cls._metrics.validation_errors
            )

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def environment(cls) -> Environment:
        return Environment.from_string(cls.ENVIRONMENT)

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["retry_max_attempts"]
        3
        """
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "log_to_file": cls.LOG_TO_FILE,
            "cache_max_entries": cls.CACHE_MAX_ENTRIES,
            "retry_max_attempts": cls.RETRY_MAX_ATTEMPTS,
            "provisional_retry_hours": cls.PROVISIONAL_RETRY_HOURS,
            "redis_key_prefix": cls.REDIS_KEY_PREFIX,
            "redis_url_set": bool(cls.REDIS_URL),
        }

    @classmethod
    def reload_safe_configs(cls) -> None:
        """
        Reload non-critical configuration values at runtime.

        Only the log level, debug flag and cache capacity are reloaded;
        retry policy and store settings require a restart.
        """
        logger = logging.getLogger(__name__)
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", cls.LOG_LEVEL)
        cls.DEBUG = cls._safe_bool("DEBUG", cls.DEBUG)
        cls.CACHE_MAX_ENTRIES = cls._safe_int(
            "CACHE_MAX_ENTRIES", cls.CACHE_MAX_ENTRIES, min_val=0, max_val=1_000_000
        )
        logger.info("Safe configuration values reloaded")


# Auto-validate on import
Config.validate()
