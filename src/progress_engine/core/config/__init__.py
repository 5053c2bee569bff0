"""
Configuration package.

- ``config.Config``: static, environment-driven settings (python-dotenv)
- ``manager.ConfigManager``: YAML policy tables with dot-notation reads

``ConfigManager`` is imported from its own module because it logs through
``progress_engine.core.logging``, which itself depends on ``Config``.
"""

from progress_engine.core.config.config import Config, Environment
from progress_engine.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
)

__all__ = [
    "Config",
    "Environment",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
]
